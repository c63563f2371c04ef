from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict
import asyncio
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from solaris.application.websocket.ws_server import router as websocket_router
from solaris.container import Container
from solaris.domain.errors import AgentError, ErrorKind
from solaris.infrastructure.observability.logging import setup_logging
from .route.documents import router as documents_router

logger = structlog.get_logger(__name__)

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.KIND_MISMATCH: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STORAGE: 503,
    ErrorKind.STREAM_TRANSPORT: 502,
    ErrorKind.TOOL_FAILURE: 500,
}


def create_app(container: Container) -> FastAPI:
    """Build the HTTP and WebSocket surface around a wired container"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        health_task = asyncio.create_task(container.connection_manager.health_check())
        logger.info("Agent server started")
        try:
            yield
        finally:
            health_task.cancel()
            for session_id in list(container.connection_manager.active_connections):
                await container.connection_manager.disconnect(session_id)
            logger.info("Agent server shutdown")

    app = FastAPI(title="Solaris Agent Server", lifespan=lifespan)
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AgentError)
    async def agent_error_handler(request: Request, exc: AgentError):
        payload = exc.to_payload(container.settings.uniform_access_errors)
        status_code = STATUS_BY_KIND[ErrorKind(payload["error_kind"])]
        logger.info("Request failed", path=request.url.path, error_kind=exc.kind.value, status_code=status_code)
        return JSONResponse(status_code=status_code, content=payload)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "active_connections": len(container.connection_manager.active_connections),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    app.include_router(documents_router)
    app.include_router(websocket_router)
    return app


def serve(container: Container, host: str = "0.0.0.0", port: int = 8000):
    """Run the server with uvicorn"""
    import uvicorn

    settings = container.settings
    setup_logging(settings.log_level, settings.log_format, settings.service_name)
    uvicorn.run(create_app(container), host=host, port=port)
