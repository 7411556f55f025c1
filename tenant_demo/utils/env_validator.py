"""环境变量验证器，按模式把字符串环境变量转换为带类型的值"""

import os
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..exceptions.database import ConfigError


class EnvVarType(Enum):
    """环境变量类型枚举"""
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"


_TRUE_VALUES = ('true', '1', 'yes', 'on')
_FALSE_VALUES = ('false', '0', 'no', 'off')


class EnvValidator:
    """环境变量验证器"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        # 默认读取进程环境；测试时可以注入一个普通字典
        self._environ = environ if environ is not None else os.environ

    def validate_env_vars(self, env_schema: Dict[str, dict]) -> Dict[str, Any]:
        """
        验证环境变量

        Args:
            env_schema: 环境变量模式定义，键为变量名

        Returns:
            验证后的环境变量字典

        Raises:
            ConfigError: 必需变量缺失或取值非法
        """
        validated_vars = {}

        for var_name, var_config in env_schema.items():
            value = self._environ.get(var_name)

            # 未设置（或为空字符串）时使用默认值
            if (value is None or value == "") and 'default' in var_config:
                value = var_config['default']

            if var_config.get('required', False) and value is None:
                raise ConfigError(f"Required environment variable {var_name} is not set")

            if value is None:
                continue

            var_type = var_config.get('type', EnvVarType.STRING)

            try:
                if var_type == EnvVarType.STRING:
                    validated_value = self._validate_string(value, var_config)
                elif var_type == EnvVarType.INTEGER:
                    validated_value = self._validate_integer(value, var_config)
                elif var_type == EnvVarType.FLOAT:
                    validated_value = self._validate_float(value, var_config)
                elif var_type == EnvVarType.BOOLEAN:
                    validated_value = self._validate_boolean(value, var_config)
                else:
                    validated_value = value
            except ValueError as e:
                raise ConfigError(f"Invalid value for environment variable {var_name}: {e}") from e

            validated_vars[var_name] = validated_value

        return validated_vars

    def _validate_string(self, value: Any, config: dict) -> str:
        if not isinstance(value, str):
            raise ValueError(f"expected a string, got {type(value).__name__}")

        if 'enum' in config and value not in config['enum']:
            raise ValueError(f"'{value}' is not one of {config['enum']}")

        return value

    def _validate_integer(self, value: Any, config: dict) -> int:
        try:
            int_value = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"cannot convert '{value}' to an integer")

        self._check_range(int_value, config)
        return int_value

    def _validate_float(self, value: Any, config: dict) -> float:
        try:
            float_value = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"cannot convert '{value}' to a float")

        self._check_range(float_value, config)
        return float_value

    def _validate_boolean(self, value: Any, config: dict) -> bool:
        if isinstance(value, bool):
            return value
        value_lower = str(value).lower()
        if value_lower in _TRUE_VALUES:
            return True
        if value_lower in _FALSE_VALUES:
            return False
        raise ValueError(f"cannot convert '{value}' to a boolean")

    @staticmethod
    def _check_range(number: float, config: dict) -> None:
        """检查最小/最大值"""
        min_val = config.get('min')
        max_val = config.get('max')

        if min_val is not None and number < min_val:
            raise ValueError(f"must be >= {min_val}")

        if max_val is not None and number > max_val:
            raise ValueError(f"must be <= {max_val}")


def get_env_validator(environ: Optional[Mapping[str, str]] = None) -> EnvValidator:
    """获取环境变量验证器实例"""
    return EnvValidator(environ)
