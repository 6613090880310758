from fastapi import FastAPI, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from launch_scanner.delivery.invalidation import request_scope
from launch_scanner.delivery.web.routes import router
from launch_scanner.ingestion.gateway import UpsertGateway
from launch_scanner.ingestion.listener import LaunchpadListener
from launch_scanner.storage.database import async_session


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    gateway: UpsertGateway | None = None,
    listeners: dict[str, LaunchpadListener] | None = None,
) -> FastAPI:
    app = FastAPI(title="Launch Scanner", version="0.1.0")
    app.state.session_factory = session_factory or async_session
    app.state.gateway = gateway
    app.state.listeners = listeners or {}

    @app.middleware("http")
    async def mark_request_context(request: Request, call_next):
        with request_scope():
            return await call_next(request)

    app.include_router(router)
    return app
