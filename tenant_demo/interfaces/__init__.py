"""
接口模块初始化文件
导出HTTP请求处理器和两个监听器的应用工厂
"""

from .http_api import (
    TenantEndpoints,
    create_public_app,
    create_internal_app,
    get_endpoints
)

__all__ = [
    'TenantEndpoints',
    'create_public_app',
    'create_internal_app',
    'get_endpoints'
]
