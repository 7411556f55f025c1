"""
核心模块 - 数据库连接池和HTTP监听器
"""

from .connection import ConnectionPool, connect_postgres
from .listener import ServerListener

__all__ = ['ConnectionPool', 'connect_postgres', 'ServerListener']
