"""KeepAwake：通过合成输入保持会话活跃的状态栏工具。"""

__version__ = "0.1.0"
