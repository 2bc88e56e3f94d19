"""Agent binary and MCP server management endpoints.

MCP operations report failures in the response body (`success=false`)
rather than as HTTP errors; the agent's own diagnostics are passed through.
"""

import logging
from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends

from agentdeck_library.models.process import McpResult
from agentdeck_library.models.process import McpServerConfig
from agentdeck_library.process.agent_cli import AgentBinary

from ..dependencies import get_agent_binary
from ..models import InstalledResponse
from ..models import VersionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["agent"])


@router.get("/agent/version", response_model=VersionResponse)
async def get_agent_version(agent: Annotated[AgentBinary, Depends(get_agent_binary)]) -> VersionResponse:
    return VersionResponse(version=await agent.version())


@router.get("/agent/installed", response_model=InstalledResponse)
async def get_agent_installed(agent: Annotated[AgentBinary, Depends(get_agent_binary)]) -> InstalledResponse:
    return InstalledResponse(installed=await agent.check_installed())


@router.get("/mcp", response_model=McpResult)
async def list_mcp_servers(agent: Annotated[AgentBinary, Depends(get_agent_binary)]) -> McpResult:
    """List configured MCP servers.

    Returns:
        McpResult whose `output` holds the agent's listing text
    """
    return await agent.mcp_list()


@router.post("/mcp", response_model=McpResult)
async def add_mcp_server(
    config: McpServerConfig,
    agent: Annotated[AgentBinary, Depends(get_agent_binary)],
) -> McpResult:
    logger.info(f"Adding MCP server {config.name} ({config.transport.value})")
    return await agent.mcp_add(config)


@router.delete("/mcp/{name}", response_model=McpResult)
async def remove_mcp_server(name: str, agent: Annotated[AgentBinary, Depends(get_agent_binary)]) -> McpResult:
    logger.info(f"Removing MCP server {name}")
    return await agent.mcp_remove(name)
