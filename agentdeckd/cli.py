"""AgentDeck CLI.

Runs agent turns from the terminal, manages MCP servers and starts the
daemon.
"""

import asyncio
import builtins
import contextlib
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import click
import psutil

from agentdeck_library.config.loader import load_config
from agentdeck_library.config.settings import AgentDeckSettings
from agentdeck_library.errors import AgentDeckError
from agentdeck_library.models.events import AssistantContentEvent
from agentdeck_library.models.events import ToolUse
from agentdeck_library.models.process import McpScope
from agentdeck_library.models.process import McpServerConfig
from agentdeck_library.models.process import McpTransport
from agentdeck_library.models.process import PermissionMode
from agentdeck_library.models.tools import tool_base_name
from agentdeck_library.models.tools import tool_summary
from agentdeck_library.process.agent_cli import AgentBinary
from agentdeck_library.process.supervisor import ProcessSupervisor
from agentdeck_library.sessions.conversation import Conversation
from agentdeck_library.sessions.conversation import ConversationOptions
from agentdeck_library.storage.paths import get_log_dir
from agentdeck_library.streaming.emitter import HostEvent
from agentdeck_library.streaming.emitter import HostEventKind


def find_agent_processes(settings: AgentDeckSettings) -> list[psutil.Process]:
    """Find running processes launched with the configured agent command.

    Args:
        settings: Supplies the agent command prefix

    Returns:
        Matching Process objects, excluding this CLI
    """
    executable = Path(settings.agent_command[-1]).name
    current_pid = psutil.Process().pid
    processes = []
    for proc in psutil.process_iter(["pid", "cmdline", "status"]):
        try:
            if proc.info["pid"] == current_pid:
                continue
            if proc.info["status"] in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD):
                continue
            cmdline = proc.info["cmdline"]
            if cmdline and any(Path(arg).name == executable for arg in cmdline[:2]):
                processes.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return processes


def conversation_options(
    cwd: str,
    model: str | None,
    permission_mode: str | None,
    allowed_tools: tuple[str, ...],
    max_turns: int | None,
) -> ConversationOptions:
    return ConversationOptions(
        cwd=str(Path(cwd).resolve()),
        model=model,
        permission_mode=PermissionMode(permission_mode) if permission_mode else None,
        allowed_tools=list(allowed_tools) or None,
        max_turns=max_turns,
    )


def turn_options(f):
    """Shared options for commands that run an agent turn."""
    f = click.option("--max-turns", type=int, default=None, help="Agentic turn limit")(f)
    f = click.option("--allow", "allowed_tools", multiple=True, help="Allowed tool name (repeatable)")(f)
    f = click.option(
        "--permission-mode",
        type=click.Choice([mode.value for mode in PermissionMode]),
        default=None,
        help="Permission mode",
    )(f)
    f = click.option("--model", default=None, help="Model selector")(f)
    f = click.option("--cwd", default=".", type=click.Path(exists=True, file_okay=False), help="Working directory")(f)
    return f


@click.group()
def cli():
    """AgentDeck - supervise agent processes and their conversations."""
    pass


@cli.command()
@click.option("--background", is_flag=True, help="Start the daemon detached, logging to the log directory")
def serve(background: bool):
    """Run the agentdeckd daemon."""
    if not background:
        from .__main__ import main as run_daemon

        run_daemon()
        return

    daemon_log = get_log_dir() / "daemon.log"
    click.echo("Starting daemon...")
    with builtins.open(str(daemon_log), "a") as log_file:
        proc = subprocess.Popen(
            [sys.executable, "-m", "agentdeckd"],
            stdout=log_file,
            stderr=log_file,
            start_new_session=True,
        )

    time.sleep(1.0)
    if proc.poll() is None:
        click.echo(f"Daemon started (PID {proc.pid}, logs: {daemon_log})")
    else:
        click.echo(f"Daemon exited with code {proc.returncode}, see {daemon_log}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("prompt")
@turn_options
def ask(prompt: str, cwd: str, model: str | None, permission_mode: str | None, allowed_tools, max_turns):
    """Run one non-streaming turn and print the response."""
    settings = load_config()
    options = conversation_options(cwd, model, permission_mode, allowed_tools, max_turns)

    async def run() -> int:
        async with ProcessSupervisor(settings) as supervisor:
            conversation = Conversation(supervisor, options)
            message = await conversation.send_message(prompt)
            conversation.close()
            if message is None:
                click.echo(f"Error: {conversation.error}", err=True)
                return 1
            click.echo(message.content)
            usage = conversation.usage
            click.echo(
                f"\n[session {conversation.session_id} | {usage.input_tokens} in / {usage.output_tokens} out]",
                err=True,
            )
            return 0

    sys.exit(asyncio.run(run()))


@cli.command()
@click.argument("prompt")
@turn_options
def chat(prompt: str, cwd: str, model: str | None, permission_mode: str | None, allowed_tools, max_turns):
    """Run one streaming turn, rendering text and tool activity live.

    Ctrl+C cancels the turn and keeps the partial response.
    """
    settings = load_config()
    options = conversation_options(cwd, model, permission_mode, allowed_tools, max_turns)

    async def run() -> int:
        async with ProcessSupervisor(settings) as supervisor:
            conversation = Conversation(supervisor, options)

            def on_text(event: HostEvent) -> None:
                if event.process_id == conversation.active_process_id:
                    click.echo(event.data["text"], nl=False)

            def on_event(event: HostEvent) -> None:
                if event.process_id != conversation.active_process_id:
                    return
                if isinstance(event.event, AssistantContentEvent):
                    for block in event.event.blocks:
                        if isinstance(block, ToolUse):
                            summary = tool_summary(block.name, block.input)
                            click.secho(f"\n[{tool_base_name(block.name)}] {summary}", fg="cyan", err=True)

            unsubscribers = [
                supervisor.bus.on(HostEventKind.STREAM_TEXT, on_text),
                supervisor.bus.on(HostEventKind.STREAM_EVENT, on_event),
            ]

            loop = asyncio.get_running_loop()
            if os.name != "nt":
                loop.add_signal_handler(signal.SIGINT, lambda: asyncio.ensure_future(conversation.cancel()))

            try:
                handle = await conversation.send_message_streaming(prompt)
                if handle is None:
                    click.echo(f"Error: {conversation.error}", err=True)
                    return 1
                message = await conversation.wait_for_turn()
            finally:
                if os.name != "nt":
                    loop.remove_signal_handler(signal.SIGINT)
                for off in unsubscribers:
                    off()
                conversation.close()

            click.echo()
            if conversation.error:
                click.echo(f"Error: {conversation.error}", err=True)
                return 1
            if message is not None and message.content.endswith("[Cancelled]"):
                click.echo("[Cancelled]", err=True)
            click.echo(f"[session {conversation.session_id}]", err=True)
            return 0

    sys.exit(asyncio.run(run()))


@cli.command()
def ps():
    """List agent processes running on this machine."""
    settings = load_config()
    processes = find_agent_processes(settings)
    if not processes:
        click.echo("No agent processes running")
        return

    click.echo(f"{'PID':>8}  {'STARTED':19}  COMMAND")
    for proc in processes:
        with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
            started = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time()))
            command = " ".join(proc.cmdline())
            click.echo(f"{proc.pid:>8}  {started}  {command[:100]}")


@cli.command()
def version():
    """Show the agent binary version."""
    agent = AgentBinary(load_config())
    agent_version = asyncio.run(agent.version())
    if agent_version is None:
        click.echo("Agent binary not found or not working", err=True)
        sys.exit(1)
    click.echo(agent_version)


@cli.group()
def mcp():
    """Manage the agent's MCP servers."""
    pass


def _report(result) -> None:
    if not result.success:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)
    if result.output:
        click.echo(result.output.rstrip())


@mcp.command("list")
def mcp_list():
    """List configured MCP servers."""
    _report(asyncio.run(AgentBinary(load_config()).mcp_list()))


@mcp.command("add")
@click.argument("name")
@click.argument("target")
@click.argument("args", nargs=-1)
@click.option(
    "--transport",
    type=click.Choice([t.value for t in McpTransport]),
    default=McpTransport.STDIO.value,
    help="Server transport; TARGET is a command for stdio, a URL otherwise",
)
@click.option("--scope", type=click.Choice([s.value for s in McpScope]), default=None, help="Configuration scope")
@click.option("-e", "--env", "env", multiple=True, help="KEY=VALUE environment entry (repeatable)")
def mcp_add(name: str, target: str, args: tuple[str, ...], transport: str, scope: str | None, env: tuple[str, ...]):
    """Register an MCP server."""
    try:
        env_map = dict(item.split("=", 1) for item in env)
    except ValueError:
        click.echo("Error: --env entries must look like KEY=VALUE", err=True)
        sys.exit(1)

    mcp_transport = McpTransport(transport)
    config = McpServerConfig(
        name=name,
        transport=mcp_transport,
        url=None if mcp_transport is McpTransport.STDIO else target,
        command=target if mcp_transport is McpTransport.STDIO else None,
        args=list(args),
        scope=McpScope(scope) if scope else None,
        env=env_map,
    )
    _report(asyncio.run(AgentBinary(load_config()).mcp_add(config)))
    click.echo(f"Added MCP server {name}")


@mcp.command("remove")
@click.argument("name")
def mcp_remove(name: str):
    """Remove an MCP server."""
    _report(asyncio.run(AgentBinary(load_config()).mcp_remove(name)))
    click.echo(f"Removed MCP server {name}")


def main():
    """Entry point for agentdeck CLI."""
    try:
        cli()
    except AgentDeckError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted")
        sys.exit(0)
