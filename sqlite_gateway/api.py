"""
FastAPI app entry point aggregating the maintenance/query routers under
sqlite_gateway/routes. Run with `uvicorn sqlite_gateway.api:app`.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import load_settings
from .errors import (
    ConstraintViolation,
    DatabaseConnectionError,
    DatabaseError,
    StatementError,
    TransactionAbort,
)
from .initializer import SchemaInitializer
from .logs import setup_logging

APP_NAME = "sqlite-gateway-api"
APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = load_settings()
    setup_logging(settings.log_level)
    # 启动时初始化数据库；失败则直接中止启动
    SchemaInitializer(settings=settings).initialize()
    yield


app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)


def _status_for(err: DatabaseError) -> int:
    if isinstance(err, (StatementError, ConstraintViolation)):
        return 400
    if isinstance(err, TransactionAbort):
        return 409
    if isinstance(err, DatabaseConnectionError):
        return 503
    # ValidationError and anything else
    return 500


@app.exception_handler(DatabaseError)
async def database_error_handler(_: Request, err: DatabaseError):
    body = {
        "error": type(err).__name__,
        "operation": err.operation,
        "detail": err.message,
    }
    if isinstance(err, TransactionAbort) and err.cause is not None:
        body["cause"] = str(err.cause)
    if err.phase is not None:
        body["phase"] = err.phase.value
    return JSONResponse(status_code=_status_for(err), content=body)


# Include routers
from .routes import base as base_routes
from .routes import database as database_routes
from .routes import users as users_routes
from .routes import logs as logs_routes

app.include_router(base_routes.router)
app.include_router(database_routes.router)
app.include_router(users_routes.router)
app.include_router(logs_routes.router)
