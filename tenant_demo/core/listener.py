"""
HTTP监听器模块
每个监听器在一个TCP端口上运行一个uvicorn服务器，多个监听器共享同一个事件循环
"""

import logging
from contextlib import contextmanager
from typing import Generator

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)


class _EmbeddedServer(uvicorn.Server):
    """不安装信号处理器的uvicorn服务器，信号由进程统一处理"""

    def install_signal_handlers(self) -> None:
        pass

    @contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        yield


class ServerListener:
    """绑定端口并把请求分发给对应应用的监听器"""

    def __init__(self, name: str, app: FastAPI, host: str, port: int, log_level: str = "info"):
        self.name = name
        self.host = host
        self.port = port
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=log_level.lower(),
            lifespan="off",
            log_config=None
        )
        self.server = _EmbeddedServer(config)

    async def serve(self) -> None:
        logger.info(f"{self.name} listener starting on {self.host}:{self.port}")
        await self.server.serve()
        logger.info(f"{self.name} listener stopped")

    def stop(self) -> None:
        """请求服务器在处理完当前请求后退出"""
        self.server.should_exit = True

    @property
    def started(self) -> bool:
        return self.server.started
