"""
查询执行服务模块
从连接池借出连接执行单条参数化查询，并保证在任何退出路径上归还连接
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.connection import ConnectionPool
from ..exceptions.database import (
    DatabaseError,
    DatabaseQueryError,
    QueryMalformedError
)

logger = logging.getLogger(__name__)

# 不可能包含占位符的片段：行注释、块注释、美元引号字符串、单引号字面量、双引号标识符
_NON_CODE = re.compile(
    r"--[^\n]*"
    r"|/\*.*?\*/"
    r"|(?<![\w$])\$(?P<tag>(?:[A-Za-z_]\w*)?)\$.*?\$(?P=tag)\$"
    r"|'(?:[^']|'')*'"
    r"|\"(?:[^\"]|\"\")*\"",
    re.DOTALL
)
_PLACEHOLDER = re.compile(r"(?<![\w$])\$(\d+)")


@dataclass
class QueryResult:
    """查询结果：有序的行映射列表和元数据"""
    rows: List[Dict[str, Any]]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


@dataclass
class QueryOutcome:
    """查询的显式返回值：要么有结果，要么有错误"""
    result: Optional[QueryResult] = None
    error: Optional[DatabaseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def check_placeholders(query: str, params: Sequence[Any]) -> None:
    """
    检查 $n 占位符与绑定参数是否一一对应

    注释、引号和美元引号内的文本，以及标识符中的 $n（如 a$1）不计入占位符。

    Raises:
        QueryMalformedError: 占位符编号集合不等于 1..len(params)
    """
    stripped = _NON_CODE.sub(" ", query)
    indices = {int(n) for n in _PLACEHOLDER.findall(stripped)}
    expected = set(range(1, len(params) + 1))
    if indices != expected:
        raise QueryMalformedError(
            f"Query expects placeholders {sorted(indices)} but got {len(params)} parameter(s)"
        )


class QueryExecutor:
    """单条查询执行器"""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    async def fetch(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        """
        执行查询并返回结果

        Args:
            query: 使用 $1, $2 ... 占位符的SQL语句
            params: 绑定参数

        Returns:
            QueryResult: 查询结果

        Raises:
            QueryMalformedError: 参数数量不匹配（不会获取连接）
            ConnectionPoolExhaustedError: 获取连接超时
            DatabaseConnectionError: 建立连接失败
            DatabaseQueryError: 查询执行失败
        """
        bind: Tuple[Any, ...] = tuple(params)
        check_placeholders(query, bind)

        started = time.perf_counter()
        try:
            async with self.pool.connection() as conn:
                records = await conn.fetch(query, *bind)
        except DatabaseError:
            raise
        except Exception as e:
            # 此时连接已经归还
            raise DatabaseQueryError("Query execution failed", e) from e

        duration_ms = round((time.perf_counter() - started) * 1000, 3)
        rows = [dict(record) for record in records]
        logger.debug(f"Query returned {len(rows)} row(s) in {duration_ms}ms")

        return QueryResult(
            rows=rows,
            metadata={
                "row_count": len(rows),
                "duration_ms": duration_ms,
                "executed_at": datetime.now(timezone.utc).isoformat()
            }
        )

    async def execute(self, query: str, params: Sequence[Any] = ()) -> QueryOutcome:
        """执行查询，把数据库错误作为返回值而不是异常"""
        try:
            return QueryOutcome(result=await self.fetch(query, params))
        except DatabaseError as e:
            logger.warning(f"{e.kind}: {e.details}")
            return QueryOutcome(error=e)
