"""打包配置：`pip install -e .` 安装依赖，`python setup.py py2app` 构建 .app。"""

from __future__ import annotations

import sys
from pathlib import Path

from setuptools import find_packages, setup


ROOT = Path(__file__).resolve().parent
VERSION = "0.1.0"

INSTALL_REQUIRES = [
    "pydantic>=2.0",
    "fastapi>=0.100",
    "uvicorn>=0.23",
    "psutil>=5.9",
    "rumps>=0.4; sys_platform == 'darwin'",
    "pyobjc-core>=9.0; sys_platform == 'darwin'",
    "pyobjc-framework-Quartz>=9.0; sys_platform == 'darwin'",
    "pyobjc-framework-Cocoa>=9.0; sys_platform == 'darwin'",
    "pyobjc-framework-ApplicationServices>=9.0; sys_platform == 'darwin'",
]

EXTRAS_REQUIRE = {
    "test": [
        "pytest>=7.0",
        "httpx>=0.24",
    ],
}

APP = [str(ROOT / "main.py")]

PLIST = {
    "CFBundleName": "KeepAwake",
    "CFBundleDisplayName": "KeepAwake",
    "CFBundleIdentifier": "com.keepawake.agent",
    "CFBundleShortVersionString": VERSION,
    "CFBundleVersion": VERSION,
    "LSUIElement": True,
    "NSAppleEventsUsageDescription": "KeepAwake 需要发送合成键鼠事件以保持会话活跃。",
    "NSHumanReadableCopyright": "© 2025 KeepAwake contributors",
}

OPTIONS = {
    "argv_emulation": False,
    "packages": ["keepawake", "anyio"],
    "includes": [
        "rumps",
        "Quartz",
        "Cocoa",
        "ApplicationServices",
        "psutil",
        "fastapi",
        "uvicorn",
        "starlette",
        "anyio",
        "h11",
        "sniffio",
        "uvicorn.lifespan.on",
        "uvicorn.protocols",
        "uvicorn.protocols.http",
        "uvicorn.protocols.http.auto",
        "uvicorn.protocols.http.h11_impl",
        "uvicorn.protocols.websockets",
        "uvicorn.protocols.websockets.auto",
        "anyio._backends",
        "anyio._backends._asyncio",
    ],
    "plist": PLIST,
    "optimize": 0,
}

# py2app 仅在构建 .app 时需要，普通安装不引入
py2app_kwargs = {}
if "py2app" in sys.argv:
    sys.setrecursionlimit(10000)
    py2app_kwargs = {
        "app": APP,
        "options": {"py2app": OPTIONS},
        "setup_requires": ["py2app"],
    }


setup(
    name="keepawake-app",
    version=VERSION,
    description="通过合成输入保持 macOS 会话活跃的状态栏工具",
    python_requires=">=3.10",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=INSTALL_REQUIRES,
    extras_require=EXTRAS_REQUIRE,
    **py2app_kwargs,
)
