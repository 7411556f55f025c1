"""配置设置模块"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from ..exceptions.database import ConfigError
from ..utils.env_validator import EnvVarType, get_env_validator


@dataclass(frozen=True)
class PoolConfig:
    """数据库连接池配置数据类，构造后不可修改"""
    host: str = "localhost"
    port: int = 5432
    database: str = "app"
    user: str = "postgres"
    password: str = field(default="", repr=False)
    max_connections: int = 10
    idle_timeout: float = 30.0
    connect_timeout: float = 5.0

    def __post_init__(self):
        if not 1 <= self.port <= 65535:
            raise ConfigError(f"Invalid database port: {self.port}")
        if self.max_connections < 1:
            raise ConfigError(f"max_connections must be >= 1, got {self.max_connections}")
        if self.idle_timeout <= 0:
            raise ConfigError(f"idle_timeout must be > 0, got {self.idle_timeout}")
        if self.connect_timeout <= 0:
            raise ConfigError(f"connect_timeout must be > 0, got {self.connect_timeout}")

    @property
    def target(self) -> str:
        """不含密码的连接目标描述，用于日志"""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class AppConfig:
    """进程级配置：租户标签、两个监听端口和连接池配置"""
    tenant_name: str = "unknown"
    public_host: str = "0.0.0.0"
    public_port: int = 8080
    internal_host: str = "0.0.0.0"
    internal_port: int = 9090
    log_level: str = "INFO"
    pool: PoolConfig = field(default_factory=PoolConfig)


class ConfigManager:
    """配置管理器，从环境变量加载 AppConfig"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.validator = get_env_validator(environ)
        self._config: Optional[AppConfig] = None

    def get_env_schema(self) -> Dict[str, Any]:
        """获取环境变量验证模式"""
        return {
            "DB_HOST": {
                "type": EnvVarType.STRING,
                "default": "localhost",
                "description": "数据库主机地址"
            },
            "DB_PORT": {
                "type": EnvVarType.INTEGER,
                "default": 5432,
                "min": 1,
                "max": 65535,
                "description": "数据库端口"
            },
            "DB_NAME": {
                "type": EnvVarType.STRING,
                "default": "app",
                "description": "数据库名称"
            },
            "DB_USER": {
                "type": EnvVarType.STRING,
                "default": "postgres",
                "description": "数据库用户名"
            },
            "DB_PASSWORD": {
                "type": EnvVarType.STRING,
                "default": "",
                "description": "数据库密码"
            },
            "DB_POOL_MAX": {
                "type": EnvVarType.INTEGER,
                "default": 10,
                "min": 1,
                "max": 100,
                "description": "连接池最大连接数"
            },
            "DB_IDLE_TIMEOUT": {
                "type": EnvVarType.FLOAT,
                "default": 30.0,
                "min": 0.001,
                "description": "空闲连接关闭时间（秒）"
            },
            "DB_CONNECT_TIMEOUT": {
                "type": EnvVarType.FLOAT,
                "default": 5.0,
                "min": 0.001,
                "description": "获取连接超时时间（秒）"
            },
            "TENANT_NAME": {
                "type": EnvVarType.STRING,
                "default": "unknown",
                "description": "租户显示名称"
            },
            "PUBLIC_HOST": {
                "type": EnvVarType.STRING,
                "default": "0.0.0.0",
                "description": "公共服务监听地址"
            },
            "PUBLIC_PORT": {
                "type": EnvVarType.INTEGER,
                "default": 8080,
                "min": 1,
                "max": 65535,
                "description": "公共服务端口"
            },
            "INTERNAL_HOST": {
                "type": EnvVarType.STRING,
                "default": "0.0.0.0",
                "description": "内部服务监听地址"
            },
            "INTERNAL_PORT": {
                "type": EnvVarType.INTEGER,
                "default": 9090,
                "min": 1,
                "max": 65535,
                "description": "内部服务端口"
            },
            "LOG_LEVEL": {
                "type": EnvVarType.STRING,
                "default": "INFO",
                "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                "description": "日志级别"
            }
        }

    def load(self) -> AppConfig:
        """加载并验证配置"""
        env_vars = self.validator.validate_env_vars(self.get_env_schema())

        pool = PoolConfig(
            host=env_vars["DB_HOST"],
            port=env_vars["DB_PORT"],
            database=env_vars["DB_NAME"],
            user=env_vars["DB_USER"],
            password=env_vars["DB_PASSWORD"],
            max_connections=env_vars["DB_POOL_MAX"],
            idle_timeout=env_vars["DB_IDLE_TIMEOUT"],
            connect_timeout=env_vars["DB_CONNECT_TIMEOUT"]
        )

        return AppConfig(
            tenant_name=env_vars["TENANT_NAME"],
            public_host=env_vars["PUBLIC_HOST"],
            public_port=env_vars["PUBLIC_PORT"],
            internal_host=env_vars["INTERNAL_HOST"],
            internal_port=env_vars["INTERNAL_PORT"],
            log_level=env_vars["LOG_LEVEL"],
            pool=pool
        )

    def get_config(self) -> AppConfig:
        """获取配置，首次调用时加载"""
        if self._config is None:
            self._config = self.load()
        return self._config


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    读取 .env 文件（如果存在）后从进程环境加载配置

    Args:
        env_file: .env 文件路径，默认为当前工作目录下的 .env

    Returns:
        AppConfig: 验证后的配置
    """
    env_path = env_file or os.path.join(os.getcwd(), '.env')
    if os.path.exists(env_path):
        load_dotenv(env_path)
    return ConfigManager().load()
