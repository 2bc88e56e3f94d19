"""Status router for agentdeckd API.

Provides health check and status information.
"""

import logging
import time
from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends

from agentdeck_library.process.supervisor import ProcessSupervisor

from .. import __version__
from ..dependencies import get_supervisor
from ..models import StatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["status"])

# Track daemon start time for uptime calculation
_start_time = time.time()


@router.get("/status", response_model=StatusResponse)
async def get_status(supervisor: Annotated[ProcessSupervisor, Depends(get_supervisor)]) -> StatusResponse:
    """Get daemon status.

    Returns:
        Version, uptime and the number of registered agent processes
    """
    return StatusResponse(
        status="running",
        version=__version__,
        uptime_seconds=time.time() - _start_time,
        active_processes=len(supervisor.list_processes()),
    )


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}
