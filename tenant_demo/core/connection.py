"""
数据库连接池模块
提供有界的异步PostgreSQL连接池：获取/归还连接、等待超时、空闲连接回收和关闭清理
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Awaitable, Callable, Deque, Dict, Optional, Set

import asyncpg

from ..config.settings import PoolConfig
from ..exceptions.database import (
    ConnectionPoolExhaustedError,
    DatabaseConnectionError,
    PoolClosedError
)

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[PoolConfig], Awaitable[Any]]


async def connect_postgres(config: PoolConfig) -> asyncpg.Connection:
    """使用 asyncpg 建立一个新的数据库会话"""
    return await asyncpg.connect(
        host=config.host,
        port=config.port,
        user=config.user,
        password=config.password,
        database=config.database,
        timeout=config.connect_timeout
    )


@dataclass
class _IdleConnection:
    connection: Any
    released_at: float


class ConnectionPool:
    """
    异步数据库连接池

    同时被租用的连接数不超过 config.max_connections。连接池对象在进程启动时显式创建，
    由调用方传递引用，在进程退出时调用 shutdown() 关闭。
    """

    def __init__(self, config: PoolConfig, connect: Optional[ConnectionFactory] = None):
        """
        初始化连接池

        Args:
            config: 连接池配置
            connect: 连接工厂，默认使用 asyncpg.connect
        """
        self.config = config
        self._connect = connect or connect_postgres
        self._slots = asyncio.Semaphore(config.max_connections)
        self._idle: Deque[_IdleConnection] = deque()
        self._leased: Set[Any] = set()
        self._size = 0
        self._acquired_total = 0
        self._released_total = 0
        self._closed = False
        self._reaper: Optional[asyncio.Task] = None
        # 正在关闭的过期连接批次，shutdown() 会等待它们完成
        self._closing: Set[asyncio.Future] = set()

    async def open(self) -> None:
        """启动空闲连接回收任务"""
        if self._closed:
            raise PoolClosedError("Connection pool is shut down")
        if self._reaper is None:
            self._reaper = asyncio.create_task(self._reap_loop())
            logger.info(
                f"Connection pool ready for {self.config.target} "
                f"(max={self.config.max_connections}, idle_timeout={self.config.idle_timeout}s)"
            )

    async def acquire(self) -> Any:
        """
        从连接池获取连接

        Returns:
            Any: 数据库连接对象，调用方必须恰好调用一次 release()

        Raises:
            ConnectionPoolExhaustedError: 超时时间内没有可用连接
            DatabaseConnectionError: 建立新连接失败
            PoolClosedError: 连接池已关闭
        """
        if self._closed:
            raise PoolClosedError("Connection pool is shut down")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.connect_timeout

        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.config.connect_timeout)
        except asyncio.TimeoutError:
            raise ConnectionPoolExhaustedError(
                f"No connection available within {self.config.connect_timeout}s "
                f"(max_connections={self.config.max_connections})"
            ) from None

        if self._closed:
            # 把许可传给下一个等待者，让它也能看到关闭状态
            self._slots.release()
            raise PoolClosedError("Connection pool is shut down")

        try:
            connection = await self._checkout(deadline)
        except BaseException:
            self._slots.release()
            raise

        self._leased.add(connection)
        self._acquired_total += 1
        return connection

    async def release(self, connection: Any) -> None:
        """归还连接，从不抛出异常"""
        if connection not in self._leased:
            logger.warning("Ignoring release of a connection that is not leased from this pool")
            return

        self._leased.discard(connection)
        self._released_total += 1
        try:
            if self._closed or not self._is_usable(connection):
                self._size -= 1
                await self._close_connection(connection)
            else:
                loop = asyncio.get_running_loop()
                self._idle.append(_IdleConnection(connection, loop.time()))
        finally:
            self._slots.release()

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[Any, None]:
        """
        获取连接的上下文管理器，在任何退出路径上都会归还连接

        Yields:
            Any: 数据库连接对象
        """
        conn = await self.acquire()
        try:
            yield conn
        finally:
            await self.release(conn)

    async def reap_idle(self) -> int:
        """
        关闭空闲时间超过 idle_timeout 的连接

        Returns:
            int: 关闭的连接数
        """
        cutoff = asyncio.get_running_loop().time() - self.config.idle_timeout
        expired = []
        # 空闲队列按归还时间排序，最旧的在左侧
        while self._idle and self._idle[0].released_at <= cutoff:
            expired.append(self._idle.popleft())

        if not expired:
            return 0

        self._size -= len(expired)
        # 这些连接已离开空闲队列，即使回收任务被取消也必须关闭
        closing = asyncio.gather(*(self._close_connection(entry.connection) for entry in expired))
        self._closing.add(closing)
        closing.add_done_callback(self._closing.discard)
        await asyncio.shield(closing)

        logger.debug(f"Closed {len(expired)} idle connection(s)")
        return len(expired)

    async def shutdown(self) -> None:
        """关闭连接池：关闭空闲连接，被租用的连接在归还时关闭"""
        if self._closed:
            return
        self._closed = True

        if self._reaper is not None:
            self._reaper.cancel()
            with suppress(asyncio.CancelledError):
                await self._reaper
            self._reaper = None

        if self._closing:
            await asyncio.gather(*self._closing)

        idle = list(self._idle)
        self._idle.clear()
        self._size -= len(idle)
        for entry in idle:
            await self._close_connection(entry.connection)

        # 唤醒正在等待的获取者
        self._slots.release()

        logger.info(
            f"Connection pool closed ({len(idle)} idle closed, "
            f"{len(self._leased)} still leased)"
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def leaked(self) -> int:
        """已获取但尚未归还的连接数"""
        return self._acquired_total - self._released_total

    @property
    def stats(self) -> Dict[str, Any]:
        """获取连接池统计信息"""
        return {
            "max_connections": self.config.max_connections,
            "size": self._size,
            "idle": len(self._idle),
            "in_use": len(self._leased),
            "acquired_total": self._acquired_total,
            "released_total": self._released_total,
            "is_closed": self._closed
        }

    async def _checkout(self, deadline: float) -> Any:
        """在已持有许可的前提下取出空闲连接或建立新连接"""
        await self.reap_idle()

        while self._idle:
            entry = self._idle.pop()
            if self._is_usable(entry.connection):
                return entry.connection
            # 连接已被服务端关闭，丢弃后继续
            self._size -= 1
            await self._close_connection(entry.connection)

        return await self._open_connection(deadline)

    async def _open_connection(self, deadline: float) -> Any:
        remaining = max(deadline - asyncio.get_running_loop().time(), 0.001)
        self._size += 1
        try:
            connection = await asyncio.wait_for(self._connect(self.config), timeout=remaining)
        except asyncio.CancelledError:
            self._size -= 1
            raise
        except Exception as e:
            self._size -= 1
            raise DatabaseConnectionError(
                f"Failed to connect to {self.config.target}", e
            ) from e

        logger.debug(f"Opened new database connection (size={self._size})")
        return connection

    @staticmethod
    def _is_usable(connection: Any) -> bool:
        return not connection.is_closed()

    async def _close_connection(self, connection: Any) -> None:
        try:
            await connection.close()
        except Exception as e:
            logger.warning(f"Error closing connection: {e}")

    async def _reap_loop(self) -> None:
        interval = max(self.config.idle_timeout / 2, 0.01)
        while not self._closed:
            await asyncio.sleep(interval)
            await self.reap_idle()
