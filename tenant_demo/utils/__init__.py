"""工具模块 - 环境变量验证和日志配置"""

from .env_validator import EnvValidator, EnvVarType, get_env_validator
from .logger import configure_logging

__all__ = ['EnvValidator', 'EnvVarType', 'get_env_validator', 'configure_logging']
