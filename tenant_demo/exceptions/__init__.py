"""异常模块初始化文件"""

from .database import (
    DatabaseError,
    ConnectionPoolExhaustedError,
    DatabaseConnectionError,
    PoolClosedError,
    QueryMalformedError,
    DatabaseQueryError,
    ConfigError
)

__all__ = [
    'DatabaseError',
    'ConnectionPoolExhaustedError',
    'DatabaseConnectionError',
    'PoolClosedError',
    'QueryMalformedError',
    'DatabaseQueryError',
    'ConfigError'
]
