"""
pytest configuration and fixtures.

The backing store is replaced by an in-memory fake that speaks the small part of
the asyncpg connection API the pool and executor use: fetch(), close() and
is_closed().
"""

import asyncio
import socket
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import pytest
from fastapi.testclient import TestClient

from tenant_demo import TenantRuntime
from tenant_demo.config import AppConfig, PoolConfig
from tenant_demo.core.connection import ConnectionPool
from tenant_demo.services.executor import QueryExecutor


class FakeConnection:
    """A single fake database session."""

    def __init__(self, db: "FakeDatabase"):
        self.db = db
        self.closed = False

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        if self.db.close_delay:
            await asyncio.sleep(self.db.close_delay)
        self.closed = True

    async def fetch(self, query: str, *params: Any) -> List[dict]:
        self.db.queries.append((query, params))
        self.db.active += 1
        self.db.peak_active = max(self.db.peak_active, self.db.active)
        try:
            if self.db.query_delay:
                await asyncio.sleep(self.db.query_delay)
            if self.db.query_error is not None:
                raise self.db.query_error
            now = datetime.now(timezone.utc)
            if "health_check" in query:
                return [{"health_check": 1, "db_time": now}]
            return [{"current_time": now, "tenant": params[0]}]
        finally:
            self.db.active -= 1


class FakeDatabase:
    """In-memory stand-in for a PostgreSQL server."""

    def __init__(self):
        self.reachable = True
        self.query_error: Optional[Exception] = None
        self.query_delay = 0.0
        self.close_delay = 0.0
        self.connect_calls = 0
        self.connections: List[FakeConnection] = []
        self.queries: List[tuple] = []
        self.active = 0
        self.peak_active = 0

    async def connect(self, config: PoolConfig) -> FakeConnection:
        self.connect_calls += 1
        if not self.reachable:
            raise OSError(f"Connection refused: {config.host}:{config.port}")
        conn = FakeConnection(self)
        self.connections.append(conn)
        return conn


@pytest.fixture
def db() -> FakeDatabase:
    """Healthy fake backing store."""
    return FakeDatabase()


@pytest.fixture
def make_pool(db: FakeDatabase) -> Callable[..., ConnectionPool]:
    """Build a pool over the fake store; keyword arguments go to PoolConfig."""
    def factory(**overrides) -> ConnectionPool:
        options = {"max_connections": 2, "idle_timeout": 30.0, "connect_timeout": 0.5}
        options.update(overrides)
        return ConnectionPool(PoolConfig(**options), connect=db.connect)
    return factory


@pytest.fixture
def pool(make_pool) -> ConnectionPool:
    return make_pool()


@pytest.fixture
def executor(pool: ConnectionPool) -> QueryExecutor:
    return QueryExecutor(pool)


@pytest.fixture
def tenant() -> str:
    return "acme"


@pytest.fixture
def app_config(tenant: str) -> AppConfig:
    return AppConfig(
        tenant_name=tenant,
        public_host="127.0.0.1",
        public_port=18080,
        internal_host="127.0.0.1",
        internal_port=19090,
        pool=PoolConfig(max_connections=2, connect_timeout=0.5)
    )


@pytest.fixture
def runtime(app_config: AppConfig, db: FakeDatabase) -> TenantRuntime:
    return TenantRuntime(app_config, connect=db.connect)


@pytest.fixture
def public_client(runtime: TenantRuntime):
    with TestClient(runtime.public_app) as client:
        yield client


@pytest.fixture
def internal_client(runtime: TenantRuntime):
    with TestClient(runtime.internal_app) as client:
        yield client


@pytest.fixture
def free_ports() -> List[int]:
    """Two free local TCP ports for the public and internal listeners."""
    sockets = []
    try:
        for _ in range(2):
            s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            s.bind(("127.0.0.1", 0))
            sockets.append(s)
        return [s.getsockname()[1] for s in sockets]
    finally:
        for s in sockets:
            s.close()
