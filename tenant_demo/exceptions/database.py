"""数据库异常模块"""

from datetime import datetime, timezone
from typing import Optional


class DatabaseError(Exception):
    """数据库基础异常类"""

    kind = "DatabaseError"

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        self.message = message
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(message)

    @property
    def details(self) -> str:
        """面向用户的错误描述，包含底层原因"""
        if self.original_error is not None:
            return f"{self.message}: {self.original_error}"
        return self.message


class ConnectionPoolExhaustedError(DatabaseError):
    """在超时时间内无法从连接池获取连接"""
    kind = "PoolExhausted"


class DatabaseConnectionError(DatabaseError):
    """建立数据库连接失败（网络或认证错误）"""
    kind = "ConnectFailed"


class PoolClosedError(DatabaseConnectionError):
    """连接池已关闭"""
    pass


class QueryMalformedError(DatabaseError):
    """占位符与绑定参数数量不匹配"""
    kind = "QueryMalformed"


class DatabaseQueryError(DatabaseError):
    """查询执行错误"""
    kind = "QueryFailed"


class ConfigError(DatabaseError):
    """配置错误"""
    kind = "ConfigError"
