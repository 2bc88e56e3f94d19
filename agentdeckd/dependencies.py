"""Shared dependency factories for FastAPI endpoints.

Services live on `app.state`, created once by the application lifespan.
"""

from fastapi import Request

from agentdeck_library.config.settings import AgentDeckSettings
from agentdeck_library.process.agent_cli import AgentBinary
from agentdeck_library.process.supervisor import ProcessSupervisor
from agentdeck_library.streaming.emitter import HostEventBus


def get_settings(request: Request) -> AgentDeckSettings:
    return request.app.state.settings


def get_supervisor(request: Request) -> ProcessSupervisor:
    """Get the daemon's process supervisor.

    Returns:
        ProcessSupervisor owned by the application lifespan
    """
    return request.app.state.supervisor


def get_event_bus(request: Request) -> HostEventBus:
    return request.app.state.supervisor.bus


def get_agent_binary(request: Request) -> AgentBinary:
    return request.app.state.agent
