"""Agent process API endpoints.

Runs agent turns and manages their processes:
- Non-streaming turns (spawn, continue) return the agent's response document
- Streaming turns return a handle; output arrives on GET /api/v1/events
- Cancel and list operate on the supervisor's registry
"""

import logging
from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends

from agentdeck_library.models.process import AgentResponse
from agentdeck_library.models.process import SpawnOptions
from agentdeck_library.process.supervisor import ProcessSupervisor

from ..dependencies import get_supervisor
from ..models import CancelResponse
from ..models import ErrorResponse
from ..models import ProcessListResponse
from ..models import StreamStartedResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/processes", tags=["processes"])

_TURN_ERRORS = {502: {"model": ErrorResponse, "description": "Agent process failed"}}


@router.post("/spawn", response_model=AgentResponse, responses=_TURN_ERRORS)
async def spawn_turn(
    options: SpawnOptions,
    supervisor: Annotated[ProcessSupervisor, Depends(get_supervisor)],
) -> AgentResponse:
    """Run a non-streaming turn and wait for its response.

    Args:
        options: Command profile for the turn
        supervisor: Process supervisor dependency

    Returns:
        Decoded agent response

    Raises:
        SpawnError, ProcessError, ParseError: Mapped to 502 by the app
    """
    return await supervisor.run(options)


@router.post("/stream", response_model=StreamStartedResponse, status_code=202, responses=_TURN_ERRORS)
async def stream_turn(
    options: SpawnOptions,
    supervisor: Annotated[ProcessSupervisor, Depends(get_supervisor)],
) -> StreamStartedResponse:
    """Start a streaming turn.

    Returns as soon as the process is registered. Subscribe to the event
    stream before calling this to receive every event of the turn.
    """
    handle = await supervisor.stream(options)
    return StreamStartedResponse(process_id=handle)


@router.post("/continue", response_model=AgentResponse, responses=_TURN_ERRORS)
async def continue_turn(
    options: SpawnOptions,
    supervisor: Annotated[ProcessSupervisor, Depends(get_supervisor)],
) -> AgentResponse:
    """Run a non-streaming turn resuming the most recent conversation."""
    return await supervisor.resume_latest(options)


@router.delete("/{process_id}", response_model=CancelResponse)
async def cancel_process(
    process_id: str,
    supervisor: Annotated[ProcessSupervisor, Depends(get_supervisor)],
) -> CancelResponse:
    """Cancel a process.

    Unknown or finished handles are not an error; they report success=false.
    """
    return CancelResponse(success=await supervisor.cancel(process_id))


@router.get("", response_model=ProcessListResponse)
async def list_processes(
    supervisor: Annotated[ProcessSupervisor, Depends(get_supervisor)],
) -> ProcessListResponse:
    return ProcessListResponse(processes=sorted(supervisor.list_processes()))
