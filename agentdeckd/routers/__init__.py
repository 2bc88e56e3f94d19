"""API routers for agentdeckd daemon."""

from .agent import router as agent_router
from .events import router as events_router
from .processes import router as processes_router
from .status import router as status_router

__all__ = [
    "agent_router",
    "events_router",
    "processes_router",
    "status_router",
]
