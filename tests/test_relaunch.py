import sys
from pathlib import Path

import pytest

from keepawake.adapters.base import RelaunchError
from keepawake.adapters.macos.relaunch import ProcessRelauncher, relaunch_command


def test_relaunch_spawns_then_terminates_after_grace(scheduler) -> None:
    spawned = []
    terminated = []
    relauncher = ProcessRelauncher(
        scheduler,
        terminate=lambda: terminated.append(scheduler.now()),
        grace_seconds=1.0,
        command=["keepawake"],
        spawn=lambda command, **kwargs: spawned.append((command, kwargs)),
    )

    relauncher.relaunch()

    assert spawned == [(["keepawake"], {"close_fds": True, "start_new_session": True})]
    assert terminated == []
    assert relauncher.pending

    scheduler.advance(1.0)

    assert terminated == [1.0]


def test_relaunch_is_not_repeated_while_pending(scheduler) -> None:
    spawned = []
    relauncher = ProcessRelauncher(
        scheduler,
        terminate=lambda: None,
        command=["keepawake"],
        spawn=lambda command, **kwargs: spawned.append(command),
    )

    relauncher.relaunch()
    relauncher.relaunch()

    assert len(spawned) == 1


def test_spawn_failure_raises_and_keeps_process(scheduler) -> None:
    terminated = []

    def broken_spawn(command, **kwargs):
        raise FileNotFoundError(command[0])

    relauncher = ProcessRelauncher(
        scheduler,
        terminate=lambda: terminated.append(True),
        command=["missing-binary"],
        spawn=broken_spawn,
    )

    with pytest.raises(RelaunchError):
        relauncher.relaunch()

    scheduler.advance(10)
    assert terminated == []
    assert not relauncher.pending


def test_relaunch_command_reruns_script(monkeypatch) -> None:
    monkeypatch.delenv("RESOURCEPATH", raising=False)
    monkeypatch.setattr(sys, "argv", ["main.py", "--flag"])

    assert relaunch_command() == [sys.executable, "main.py", "--flag"]


def test_relaunch_command_reopens_bundle(monkeypatch, tmp_path) -> None:
    resources = tmp_path / "KeepAwake.app" / "Contents" / "Resources"
    resources.mkdir(parents=True)
    monkeypatch.setenv("RESOURCEPATH", str(resources))

    command = relaunch_command()

    assert command[:2] == ["open", "-n"]
    assert Path(command[2]).name == "KeepAwake.app"
