"""配置模块初始化文件"""

from .settings import AppConfig, PoolConfig, ConfigManager, load_config

__all__ = [
    'AppConfig',
    'PoolConfig',
    'ConfigManager',
    'load_config'
]
