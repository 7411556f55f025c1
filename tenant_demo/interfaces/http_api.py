"""
HTTP接口模块
把HTTP请求映射为一次查询调用（健康检查不访问数据库），并把结果序列化为JSON响应
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..exceptions.database import DatabaseError
from ..services.executor import QueryExecutor

logger = logging.getLogger(__name__)

# asyncpg 无法推断 SELECT 列表中未声明类型的参数，因此显式转换为 text
TENANT_QUERY = "SELECT NOW() as current_time, $1::text as tenant"
DB_HEALTH_QUERY = "SELECT 1 as health_check, NOW() as db_time"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


class TenantEndpoints:
    """
    两个监听器共用的请求处理器

    每个请求彼此独立，不保存跨请求状态。
    """

    def __init__(self, executor: QueryExecutor, tenant: str):
        self.executor = executor
        self.tenant = tenant

    async def greet(self, endpoint: str) -> JSONResponse:
        """/public 与 /internal：查询数据库时间并回显租户标签"""
        outcome = await self.executor.execute(TENANT_QUERY, [self.tenant])
        if not outcome.ok:
            return self._failure(outcome.error)

        return _json(200, {
            "message": f"Hello from {self.tenant} {endpoint} endpoint",
            "data": outcome.result.first(),
            "endpoint": endpoint,
            "status": "success"
        })

    def health(self, endpoint: str) -> JSONResponse:
        """/health：不访问数据库"""
        return _json(200, {
            "status": "healthy",
            "tenant": self.tenant,
            "endpoint": endpoint,
            "timestamp": _utcnow()
        })

    async def db_health(self) -> JSONResponse:
        """/db-health：执行一次最小查询检查数据库可用性"""
        outcome = await self.executor.execute(DB_HEALTH_QUERY)
        if not outcome.ok:
            error = outcome.error
            return _json(500, {
                "status": "database_unhealthy",
                "error": error.kind,
                "details": error.details,
                "tenant": self.tenant,
                "timestamp": error.timestamp.isoformat()
            })

        return _json(200, {
            "status": "healthy",
            "data": outcome.result.first(),
            "tenant": self.tenant,
            "timestamp": _utcnow(),
            "pool": self.executor.pool.stats
        })

    def _failure(self, error: DatabaseError) -> JSONResponse:
        return _json(500, {
            "status": "error",
            "error": "Database connection failed",
            "kind": error.kind,
            "details": error.details,
            "tenant": self.tenant,
            "timestamp": error.timestamp.isoformat()
        })


def get_endpoints(request: Request) -> TenantEndpoints:
    """FastAPI依赖项：从应用状态取出请求处理器"""
    return request.app.state.endpoints


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.url.path}")
    endpoints: TenantEndpoints = request.app.state.endpoints
    return _json(500, {
        "status": "error",
        "error": "Internal server error",
        "details": str(exc) or type(exc).__name__,
        "tenant": endpoints.tenant,
        "timestamp": _utcnow()
    })


def _build_app(name: str, endpoints: TenantEndpoints) -> FastAPI:
    app = FastAPI(title=f"{endpoints.tenant} {name}", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.endpoints = endpoints
    app.add_exception_handler(Exception, _unhandled_error)

    @app.get("/health")
    async def health(handler: TenantEndpoints = Depends(get_endpoints)):
        return handler.health(name)

    return app


def create_public_app(endpoints: TenantEndpoints) -> FastAPI:
    """
    创建公共监听器应用

    Routes:
        GET /public, GET /health, GET /db-health
    """
    app = _build_app("public", endpoints)

    @app.get("/public")
    async def public(handler: TenantEndpoints = Depends(get_endpoints)):
        return await handler.greet("public")

    @app.get("/db-health")
    async def db_health(handler: TenantEndpoints = Depends(get_endpoints)):
        return await handler.db_health()

    return app


def create_internal_app(endpoints: TenantEndpoints) -> FastAPI:
    """
    创建内部监听器应用

    Routes:
        GET /internal, GET /health
    """
    app = _build_app("internal", endpoints)

    @app.get("/internal")
    async def internal(handler: TenantEndpoints = Depends(get_endpoints)):
        return await handler.greet("internal")

    return app
