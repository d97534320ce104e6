"""FastAPI 控制接口：读取状态并调用核心的公开开关。"""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
import time
from typing import Any, Optional, Protocol

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from keepawake.config import JiggleInterval, ScheduleWindow
from keepawake.core.coordinator import KeepAwakeStatus

logger = logging.getLogger(__name__)


class ServiceControls(Protocol):
    def set_running(self, running: bool, wait: bool = False) -> None: ...

    def set_interval(self, interval: JiggleInterval, wait: bool = False) -> None: ...

    def set_randomize(self, randomize: bool, wait: bool = False) -> None: ...

    def set_schedule_enabled(self, enabled: bool, wait: bool = False) -> None: ...

    def set_schedule_windows(
        self,
        weekday: ScheduleWindow,
        weekend: ScheduleWindow,
        weekend_enabled: bool,
        wait: bool = False,
    ) -> None: ...

    def set_pause_on_battery(self, enabled: bool, wait: bool = False) -> None: ...

    def get_status(self) -> Optional[KeepAwakeStatus]: ...


class RunningUpdate(BaseModel):
    running: bool


class IntervalUpdate(BaseModel):
    seconds: JiggleInterval


class RandomizeUpdate(BaseModel):
    enabled: bool


class ScheduleUpdate(BaseModel):
    enabled: Optional[bool] = None
    weekday_start: Optional[str] = None
    weekday_stop: Optional[str] = None
    weekend_enabled: Optional[bool] = None
    weekend_start: Optional[str] = None
    weekend_stop: Optional[str] = None


class PowerUpdate(BaseModel):
    pause_on_battery: bool


def status_to_dict(status: Optional[KeepAwakeStatus]) -> dict[str, Any]:
    if status is None:
        return {"running": False, "state": "UNKNOWN"}
    return {
        "running": status.running,
        "state": "RUNNING" if status.running else "OFF",
        "interval": int(status.interval),
        "interval_label": status.interval.label,
        "randomize": status.randomize,
        "schedule": {
            "enabled": status.schedule_enabled,
            "inside_window": status.inside_window,
            "weekday_start": status.weekday_window.start,
            "weekday_stop": status.weekday_window.stop,
            "weekend_enabled": status.weekend_enabled,
            "weekend_start": status.weekend_window.start,
            "weekend_stop": status.weekend_window.stop,
        },
        "power": {
            "pause_on_battery": status.pause_on_battery,
            "on_battery": status.on_battery,
            "paused": status.power_paused,
        },
        "failure_count": status.failure_count,
        "emit_count": status.emit_count,
        "last_emit_at": status.last_emit_at,
        "relaunch_requested": status.relaunch_requested,
        "updated_at": status.updated_at,
    }


def create_app(service: ServiceControls) -> FastAPI:
    """构建 FastAPI 应用并注册路由。"""

    app = FastAPI(title="KeepAwake")

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/status", tags=["status"])
    async def status() -> dict:
        return status_to_dict(service.get_status())

    @app.post("/running", tags=["control"])
    def set_running(update: RunningUpdate) -> dict:
        service.set_running(update.running, wait=True)
        return status_to_dict(service.get_status())

    @app.put("/interval", tags=["control"])
    def set_interval(update: IntervalUpdate) -> dict:
        service.set_interval(update.seconds, wait=True)
        return status_to_dict(service.get_status())

    @app.put("/randomize", tags=["control"])
    def set_randomize(update: RandomizeUpdate) -> dict:
        service.set_randomize(update.enabled, wait=True)
        return status_to_dict(service.get_status())

    @app.put("/schedule", tags=["control"])
    def set_schedule(update: ScheduleUpdate) -> dict:
        current = service.get_status()
        if current is None:
            raise HTTPException(status_code=503, detail="服务尚未就绪")

        window_fields = (
            update.weekday_start,
            update.weekday_stop,
            update.weekend_enabled,
            update.weekend_start,
            update.weekend_stop,
        )
        if any(value is not None for value in window_fields):
            try:
                weekday = ScheduleWindow(
                    start=update.weekday_start or current.weekday_window.start,
                    stop=update.weekday_stop or current.weekday_window.stop,
                )
                weekend = ScheduleWindow(
                    start=update.weekend_start or current.weekend_window.start,
                    stop=update.weekend_stop or current.weekend_window.stop,
                )
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            weekend_enabled = (
                update.weekend_enabled if update.weekend_enabled is not None else current.weekend_enabled
            )
            service.set_schedule_windows(weekday, weekend, weekend_enabled, wait=True)

        if update.enabled is not None:
            service.set_schedule_enabled(update.enabled, wait=True)
        return status_to_dict(service.get_status())

    @app.put("/power", tags=["control"])
    def set_power(update: PowerUpdate) -> dict:
        service.set_pause_on_battery(update.pause_on_battery, wait=True)
        return status_to_dict(service.get_status())

    return app


def bind_api_socket(host: str, port: int, attempts: int = 10, retry_seconds: float = 0.5) -> socket.socket:
    """绑定监听端口，端口被占用时按间隔重试。

    进程重启时旧实例在宽限期内仍占着端口，新实例需要等它退出。
    """

    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    for attempt in range(1, attempts + 1):
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            sock.close()
            if attempt >= attempts:
                raise
            logger.warning(
                "端口 %s:%s 被占用，%.1f 秒后重试 (%d/%d)", host, port, retry_seconds, attempt, attempts
            )
            time.sleep(retry_seconds)
            continue
        return sock
    raise OSError(f"无法绑定 {host}:{port}")


def start_api_in_thread(
    app: FastAPI,
    host: str,
    port: int,
    bind_attempts: int = 10,
    retry_seconds: float = 0.5,
) -> threading.Thread:
    """在守护线程中运行 uvicorn，端口的绑定与重试也在该线程内完成。"""

    config = uvicorn.Config(app, host=host, port=port, reload=False, log_level="warning")
    server = uvicorn.Server(config)

    def _serve() -> None:
        try:
            sock = bind_api_socket(host, port, bind_attempts, retry_seconds)
        except OSError:
            logger.error("控制接口无法监听 %s:%s，已放弃", host, port, exc_info=True)
            return
        asyncio.run(server.serve(sockets=[sock]))

    thread = threading.Thread(target=_serve, name="keepawake-api", daemon=True)
    thread.start()
    logger.info("控制接口监听 http://%s:%s", host, port)
    return thread
