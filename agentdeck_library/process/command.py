"""Agent command-line construction.

Translates SpawnOptions into the agent's flag vocabulary, and composes a
quoted command line for shell-launched invocations.

Contract:
- Inputs: SpawnOptions, output format, MCP server configs
- Outputs: argv lists or a single shell command string
- Side Effects: None
"""

import os
import re
import shlex

from ..models.process import McpServerConfig
from ..models.process import McpTransport
from ..models.process import OutputFormat
from ..models.process import SpawnOptions

_SAFE_TOKEN = re.compile(r"^[A-Za-z0-9_@%+=:,./-]+$")


def build_agent_args(options: SpawnOptions, output_format: OutputFormat) -> list[str]:
    """Build the flag list for one agent turn.

    Args:
        options: Command profile for the turn
        output_format: Whole-document JSON or streaming JSON

    Returns:
        Arguments to append after the agent command prefix

    Example:
        >>> build_agent_args(SpawnOptions(prompt="hi", session_id="s1"), OutputFormat.JSON)
        ['-p', 'hi', '--output-format', 'json', '--resume', 's1']
    """
    args = ["-p", options.prompt, "--output-format", output_format.value]

    if output_format is OutputFormat.STREAM_JSON:
        # stream-json requires --verbose; partial messages carry the text deltas
        args.extend(["--verbose", "--include-partial-messages"])

    if options.session_id:
        args.extend(["--resume", options.session_id])
    elif options.continue_latest:
        args.append("--continue")

    if options.allowed_tools:
        args.extend(["--allowedTools", ",".join(options.allowed_tools)])
    if options.disallowed_tools:
        args.extend(["--disallowedTools", ",".join(options.disallowed_tools)])
    if options.permission_mode is not None:
        args.extend(["--permission-mode", options.permission_mode.value])
    if options.model:
        args.extend(["--model", options.model])
    if options.max_turns is not None:
        args.extend(["--max-turns", str(options.max_turns)])
    if options.system_prompt:
        args.extend(["--system-prompt", options.system_prompt])
    if options.append_system_prompt:
        args.extend(["--append-system-prompt", options.append_system_prompt])

    return args


def build_mcp_add_args(config: McpServerConfig) -> list[str]:
    """Build `mcp add` arguments for a server registration.

    Raises:
        ValueError: If the transport's required target (url or command) is missing
    """
    args = ["mcp", "add", "--transport", config.transport.value]
    if config.scope is not None:
        args.extend(["--scope", config.scope.value])
    for key, value in config.env.items():
        args.extend(["-e", f"{key}={value}"])

    if config.transport is McpTransport.STDIO:
        if not config.command:
            raise ValueError(f"MCP server {config.name} uses stdio transport but has no command")
        args.extend([config.name, "--", config.command, *config.args])
    else:
        if not config.url:
            raise ValueError(f"MCP server {config.name} uses {config.transport.value} transport but has no url")
        args.extend([config.name, config.url])

    return args


def quote_shell_arg(value: str, windows: bool | None = None) -> str:
    r"""Quote one value for a shell-invoked command line.

    On Windows (cmd.exe) embedded double quotes are doubled and the whole
    value is wrapped in double quotes. On POSIX shells the value is quoted
    with `shlex.quote`, so `$`, backticks and quotes reach the agent verbatim.

    Args:
        value: Argument text
        windows: Force the quoting convention (default: the running platform)

    Example:
        >>> quote_shell_arg('say "hi"', windows=True) == '"say ' + '""hi""' + '"'
        True
        >>> quote_shell_arg("it's $HOME", windows=False)
        '\'it\'"\'"\'s $HOME\''
    """
    if windows is None:
        windows = os.name == "nt"
    if windows:
        return '"' + value.replace('"', '""') + '"'
    return shlex.quote(value)


def build_shell_command(argv: list[str], windows: bool | None = None) -> str:
    """Join argv into one shell command line, quoting every non-trivial token."""
    return " ".join(token if _SAFE_TOKEN.match(token) else quote_shell_arg(token, windows) for token in argv)
