"""
服务模块 - 查询执行
"""

from .executor import QueryExecutor, QueryOutcome, QueryResult, check_placeholders

__all__ = ['QueryExecutor', 'QueryOutcome', 'QueryResult', 'check_placeholders']
