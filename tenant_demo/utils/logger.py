"""
日志配置模块
进程启动时调用一次 configure_logging()，各模块通过 logging.getLogger(__name__) 获取日志器
"""

import logging
import sys

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_HANDLER_NAME = "tenant_demo"


def configure_logging(level: str = "INFO") -> None:
    """
    配置根日志器

    Args:
        level: 日志级别名称，例如 "INFO" 或 "DEBUG"
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    # 重复调用时不再追加处理器
    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    root.addHandler(handler)
