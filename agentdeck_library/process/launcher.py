"""OS process creation for agent invocations."""

import asyncio
import logging

from ..config.settings import AgentDeckSettings
from ..errors import SpawnError
from .command import build_shell_command

logger = logging.getLogger(__name__)


async def launch(argv: list[str], settings: AgentDeckSettings, cwd: str | None = None) -> asyncio.subprocess.Process:
    """Start a subprocess with piped stdout/stderr.

    The child gets its own session (process group) so that an interrupt can
    reach everything it starts.

    Args:
        argv: Full argument vector, command prefix included
        settings: Supplies `use_shell`
        cwd: Working directory, or None for the current one

    Returns:
        The running process

    Raises:
        SpawnError: If the OS cannot create the process
    """
    try:
        if settings.use_shell:
            return await asyncio.create_subprocess_shell(
                build_shell_command(argv),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                start_new_session=True,
            )
        return await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            start_new_session=True,
        )
    except OSError as e:
        logger.error(f"Failed to spawn {argv[0]}: {e}")
        raise SpawnError(f"Failed to spawn {argv[0]}: {e}") from e
