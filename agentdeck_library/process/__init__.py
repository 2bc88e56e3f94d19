"""Agent process launching, supervision and output decoding."""

from .agent_cli import AgentBinary
from .agent_cli import CommandOutput
from .command import build_agent_args
from .command import build_mcp_add_args
from .command import build_shell_command
from .command import quote_shell_arg
from .launcher import launch
from .result import decode_agent_response
from .result import extract_outermost_json
from .result import tail
from .supervisor import ManagedProcess
from .supervisor import ProcessSupervisor
from .supervisor import new_process_handle

__all__ = [
    "AgentBinary",
    "CommandOutput",
    "ManagedProcess",
    "ProcessSupervisor",
    "build_agent_args",
    "build_mcp_add_args",
    "build_shell_command",
    "decode_agent_response",
    "extract_outermost_json",
    "launch",
    "new_process_handle",
    "quote_shell_arg",
    "tail",
]
