"""Main FastAPI application for agentdeckd daemon.

This module creates and configures the FastAPI application that exposes
the agentdeck process host via REST API with SSE streaming.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agentdeck_library.config.loader import load_config
from agentdeck_library.config.settings import AgentDeckSettings
from agentdeck_library.errors import AgentDeckError
from agentdeck_library.errors import ParseError
from agentdeck_library.errors import ProcessError
from agentdeck_library.process.agent_cli import AgentBinary
from agentdeck_library.process.supervisor import ProcessSupervisor

from . import __version__
from .models import ErrorResponse
from .routers import agent_router
from .routers import events_router
from .routers import processes_router
from .routers import status_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Creates the process supervisor on startup and force-terminates every
    still-registered agent process on shutdown.

    Args:
        app: FastAPI application instance
    """
    settings = load_config()
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info(f"Starting agentdeckd daemon on {settings.host}:{settings.port}")

    supervisor = ProcessSupervisor(settings)
    app.state.settings = settings
    app.state.supervisor = supervisor
    app.state.agent = AgentBinary(settings)

    yield

    logger.info("Shutting down agentdeckd daemon")
    await supervisor.shutdown()
    supervisor.bus.clear()


# Create FastAPI application
app = FastAPI(
    title="agentdeckd",
    description="REST API daemon for supervising agent processes with SSE streaming",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=AgentDeckSettings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(processes_router)
app.include_router(events_router)
app.include_router(agent_router)
app.include_router(status_router)


@app.exception_handler(AgentDeckError)
async def agent_error_handler(request: Request, exc: AgentDeckError) -> JSONResponse:
    """Map turn-level failures to 502 Bad Gateway.

    Args:
        request: Failed request
        exc: SpawnError, ProcessError or ParseError

    Returns:
        ErrorResponse body
    """
    body = ErrorResponse(error=str(exc))
    if isinstance(exc, ProcessError):
        body = ErrorResponse(error=f"Process exited with code {exc.exit_code}", detail=exc.detail, exit_code=exc.exit_code)
    elif isinstance(exc, ParseError):
        body = ErrorResponse(error=str(exc), detail=exc.detail)

    logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=502, content=body.model_dump(by_alias=True, exclude_none=True))


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint.

    Returns:
        Welcome message with API information
    """
    return {
        "name": "agentdeckd",
        "version": __version__,
        "description": "REST API daemon for agent process supervision",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }
