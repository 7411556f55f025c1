"""
tenant_demo - 多租户HTTP演示服务
每个进程运行两个监听器（public、internal），共享一个PostgreSQL连接池
"""

import asyncio
import logging
import signal
from contextlib import suppress
from typing import List, Optional

from .config.settings import AppConfig, PoolConfig, load_config
from .core.connection import ConnectionFactory, ConnectionPool
from .core.listener import ServerListener
from .exceptions.database import ConfigError
from .interfaces.http_api import TenantEndpoints, create_internal_app, create_public_app
from .services.executor import QueryExecutor
from .utils.logger import configure_logging

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


class TenantRuntime:
    """
    进程运行时：持有连接池、查询执行器和两个监听器

    生命周期：构造 -> serve() -> 收到 SIGTERM/SIGINT 后停止监听器 -> 关闭连接池。
    """

    def __init__(self, config: AppConfig, connect: Optional[ConnectionFactory] = None):
        self.config = config
        self.pool = ConnectionPool(config.pool, connect=connect)
        self.executor = QueryExecutor(self.pool)
        self.endpoints = TenantEndpoints(self.executor, config.tenant_name)
        self.public_app = create_public_app(self.endpoints)
        self.internal_app = create_internal_app(self.endpoints)
        self.listeners: List[ServerListener] = [
            ServerListener("public", self.public_app, config.public_host, config.public_port, config.log_level),
            ServerListener("internal", self.internal_app, config.internal_host, config.internal_port, config.log_level)
        ]

    async def serve(self) -> None:
        """运行两个监听器直到收到停止信号，然后关闭连接池"""
        await self.pool.open()
        self._install_signal_handlers()
        logger.info(
            f"Tenant '{self.config.tenant_name}' serving public:{self.config.public_port} "
            f"internal:{self.config.internal_port} (db {self.config.pool.target})"
        )
        try:
            await asyncio.gather(*(listener.serve() for listener in self.listeners))
        finally:
            self._remove_signal_handlers()
            await self.shutdown()

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        if signum is not None:
            logger.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
        for listener in self.listeners:
            listener.stop()

    async def shutdown(self) -> None:
        await self.pool.shutdown()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(signum, self.request_shutdown, signum)
            except NotImplementedError:
                # Windows 事件循环不支持 add_signal_handler
                signal.signal(signum, lambda s, _frame: loop.call_soon_threadsafe(self.request_shutdown, s))

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            with suppress(NotImplementedError):
                loop.remove_signal_handler(signum)


def main() -> int:
    """命令行入口，返回进程退出码"""
    try:
        config = load_config()
    except ConfigError as e:
        configure_logging("INFO")
        logger.error(f"Invalid configuration: {e.message}")
        return 1

    configure_logging(config.log_level)
    asyncio.run(TenantRuntime(config).serve())
    return 0


__all__ = [
    'AppConfig',
    'PoolConfig',
    'ConnectionPool',
    'QueryExecutor',
    'TenantEndpoints',
    'TenantRuntime',
    'main'
]
