"""Auxiliary agent binary commands.

Short-lived invocations outside the conversation flow: version probing,
installation check and MCP server management. These never go through the
supervisor's registry and never raise on a non-zero exit; failures are
reported in the returned value.

Contract:
- Inputs: AgentDeckSettings, MCP server configs
- Outputs: Version strings, McpResult values
- Side Effects: Runs the agent binary, which may edit its MCP configuration
"""

import asyncio
import logging
from dataclasses import dataclass

from ..config.settings import AgentDeckSettings
from ..errors import SpawnError
from ..models.process import McpResult
from ..models.process import McpServerConfig
from .command import build_mcp_add_args
from .launcher import launch
from .result import tail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutput:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class AgentBinary:
    """Run one-shot agent commands.

    Example:
        >>> agent = AgentBinary(AgentDeckSettings())
        >>> await agent.check_installed()
        True
    """

    def __init__(self, settings: AgentDeckSettings, timeout: float = 30.0) -> None:
        self.settings = settings
        self.timeout = timeout

    async def execute(self, args: list[str]) -> CommandOutput:
        """Run the agent with `args` and collect its output.

        Raises:
            SpawnError: If the process cannot be created or does not finish in time
        """
        process = await launch([*self.settings.agent_command, *args], self.settings)
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise SpawnError(f"Agent command timed out after {self.timeout}s: {' '.join(args)}") from e

        return CommandOutput(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def version(self) -> str | None:
        """Version string printed by `--version`, or None if unavailable."""
        try:
            output = await self.execute(["--version"])
        except SpawnError as e:
            logger.warning(f"Agent version check failed: {e}")
            return None
        if not output.ok:
            logger.warning(f"Agent version check exited with code {output.exit_code}")
            return None
        return output.stdout.strip() or None

    async def check_installed(self) -> bool:
        return await self.version() is not None

    async def mcp_list(self) -> McpResult:
        """List configured MCP servers.

        The listing text is returned in `output`.
        """
        return await self._mcp(["mcp", "list"])

    async def mcp_add(self, config: McpServerConfig) -> McpResult:
        try:
            args = build_mcp_add_args(config)
        except ValueError as e:
            return McpResult(success=False, error=str(e))
        return await self._mcp(args)

    async def mcp_remove(self, name: str) -> McpResult:
        return await self._mcp(["mcp", "remove", name])

    async def _mcp(self, args: list[str]) -> McpResult:
        try:
            output = await self.execute(args)
        except SpawnError as e:
            return McpResult(success=False, error=str(e))

        if not output.ok:
            detail = tail(output.stderr or output.stdout, self.settings.error_tail_chars)
            logger.warning(f"'{' '.join(args[:2])}' exited with code {output.exit_code}: {detail}")
            return McpResult(success=False, error=detail or f"exited with code {output.exit_code}")
        return McpResult(success=True, output=output.stdout)
