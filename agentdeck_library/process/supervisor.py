"""Agent process supervision.

Owns the mapping from generated process handles to live agent subprocesses,
and is the single event-routing path for each handle's output: stdout is
framed and classified, stderr is surfaced verbatim, and lifecycle
notifications are published on a HostEventBus.

Contract:
- Inputs: SpawnOptions, cancellation requests
- Outputs: Process handles, AgentResponse documents, host events
- Side Effects: Creates, interrupts and kills OS processes

Example:
    >>> supervisor = ProcessSupervisor(AgentDeckSettings())
    >>> off = supervisor.bus.on(HostEventKind.STREAM_TEXT, lambda e: print(e.data["text"], end=""))
    >>> handle = await supervisor.stream(SpawnOptions(prompt="Hello", cwd="."))
    >>> await supervisor.wait(handle)
"""

import asyncio
import itertools
import logging
import os
import secrets
import signal
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from datetime import UTC
from datetime import datetime

import psutil

from ..config.settings import AgentDeckSettings
from ..errors import ProcessError
from ..errors import SpawnError
from ..models.events import InitEvent
from ..models.events import TerminalResultEvent
from ..models.events import TextDeltaEvent
from ..models.process import AgentResponse
from ..models.process import OutputFormat
from ..models.process import ProcessHandle
from ..models.process import SpawnOptions
from ..streaming.classifier import ParseSkip
from ..streaming.classifier import classify
from ..streaming.emitter import HostEvent
from ..streaming.emitter import HostEventBus
from ..streaming.emitter import HostEventKind
from ..streaming.framing import LineFramer
from .command import build_agent_args
from .launcher import launch
from .result import decode_agent_response
from .result import tail

logger = logging.getLogger(__name__)

_handle_counter = itertools.count(1)


def new_process_handle() -> ProcessHandle:
    """Generate a handle unique within this process's lifetime."""
    return ProcessHandle(f"proc-{next(_handle_counter)}-{secrets.token_hex(4)}")


@dataclass
class ManagedProcess:
    """Bookkeeping for one registered subprocess."""

    handle: ProcessHandle
    process: asyncio.subprocess.Process
    output_format: OutputFormat
    started_at: datetime
    stdout_chunks: list[bytes] = field(default_factory=list)
    stderr_tail: str = ""
    session_id: str | None = None
    cancelled: bool = False
    pump: asyncio.Task[int] | None = None

    @property
    def streaming(self) -> bool:
        return self.output_format is OutputFormat.STREAM_JSON


class ProcessSupervisor:
    """Spawn, track, cancel and clean up agent subprocesses.

    All methods must be called from the event loop that owns the supervisor;
    the registry is never touched from another thread.
    """

    def __init__(
        self,
        settings: AgentDeckSettings,
        bus: HostEventBus | None = None,
        framer: LineFramer | None = None,
    ) -> None:
        """Initialize supervisor.

        Args:
            settings: Agent command and limits
            bus: Event bus for host notifications (a new one if omitted)
            framer: Line framer shared across handles (a new one if omitted)
        """
        self.settings = settings
        self.bus = bus or HostEventBus()
        self.framer = framer or LineFramer()
        self._processes: dict[ProcessHandle, ManagedProcess] = {}
        # every spawned process until its output pump finishes, cancelled ones included
        self._live: dict[ProcessHandle, ManagedProcess] = {}

    # --- Lifecycle ---

    async def spawn(self, options: SpawnOptions, output_format: OutputFormat) -> ProcessHandle:
        """Start one agent invocation and register it.

        The handle is visible to `cancel()` and `list_processes()` as soon as
        this returns, before any output arrives.

        Args:
            options: Command profile for the turn
            output_format: Whole-document JSON or streaming JSON

        Returns:
            Handle of the new process

        Raises:
            SpawnError: If the OS process cannot be created
        """
        managed, _ = await self._start(options, output_format)
        return managed.handle

    async def stream(self, options: SpawnOptions) -> ProcessHandle:
        """Start a streaming turn and return its handle immediately.

        Output is delivered through `bus` notifications.
        """
        return await self.spawn(options, OutputFormat.STREAM_JSON)

    async def run(self, options: SpawnOptions) -> AgentResponse:
        """Run a non-streaming turn to completion.

        If the caller is cancelled while waiting, the process is interrupted
        and unregistered before the cancellation propagates.

        Returns:
            The decoded response document

        Raises:
            SpawnError: If the process cannot be created
            ProcessError: If the process exits non-zero
            ParseError: If stdout is not a decodable response
        """
        managed, pump = await self._start(options, OutputFormat.JSON)
        try:
            exit_code = await asyncio.shield(pump)
        except asyncio.CancelledError:
            logger.info(f"Caller of {managed.handle} was cancelled, interrupting the process")
            await self.cancel(managed.handle)
            raise

        stdout = b"".join(managed.stdout_chunks).decode("utf-8", errors="replace")
        if exit_code != 0:
            detail = managed.stderr_tail or tail(stdout, self.settings.error_tail_chars)
            raise ProcessError(exit_code, tail(detail, self.settings.error_tail_chars))
        return decode_agent_response(stdout, process_id=managed.handle, tail_chars=self.settings.error_tail_chars)

    async def resume_latest(self, options: SpawnOptions) -> AgentResponse:
        """Run a non-streaming turn continuing the most recent conversation."""
        return await self.run(options.model_copy(update={"session_id": None, "continue_latest": True}))

    async def cancel(self, handle: str) -> bool:
        """Interrupt a process and stop tracking it.

        The handle leaves the registry immediately; the process receives a
        graceful interrupt and its remaining output belongs to a dead handle.

        Args:
            handle: Process handle

        Returns:
            True if the handle was registered, False for unknown or finished handles
        """
        managed = self._processes.pop(ProcessHandle(handle), None)
        if managed is None:
            return False

        managed.cancelled = True
        if managed.process.returncode is None:
            _interrupt(managed.process)
        logger.info(f"Cancelled {handle}")
        return True

    def list_processes(self) -> set[ProcessHandle]:
        """Snapshot of registered handles."""
        return set(self._processes)

    def get(self, handle: str) -> ManagedProcess | None:
        return self._processes.get(ProcessHandle(handle))

    async def wait(self, handle: str) -> int | None:
        """Wait for a process to exit.

        Works for registered handles and for cancelled handles whose process
        is still winding down.

        Returns:
            Exit code, or None if the handle is unknown or already reaped
        """
        managed = self._live.get(ProcessHandle(handle))
        if managed is None or managed.pump is None:
            return None
        return await asyncio.shield(managed.pump)

    async def shutdown(self) -> None:
        """Force-terminate every process this supervisor started.

        Covers registered processes and cancelled ones that have not exited
        yet. Process trees get SIGTERM, then SIGKILL after the configured
        grace period. Called when the owning host shuts down.
        """
        self._processes.clear()
        managed_list = [managed for managed in self._live.values() if managed.process.returncode is None]
        pumps = [managed.pump for managed in self._live.values() if managed.pump is not None]
        if managed_list:
            logger.info(f"Shutting down {len(managed_list)} agent process(es)")
            procs: list[psutil.Process] = []
            for managed in managed_list:
                managed.cancelled = True
                procs.extend(_process_tree(managed.process.pid))

            for proc in procs:
                try:
                    proc.terminate()
                except psutil.NoSuchProcess:
                    continue

            _, alive = await asyncio.to_thread(psutil.wait_procs, procs, timeout=self.settings.terminate_grace_seconds)
            for proc in alive:
                try:
                    logger.warning(f"Process {proc.pid} did not stop gracefully, force killing")
                    proc.kill()
                except psutil.NoSuchProcess:
                    continue

        if pumps:
            await asyncio.wait(pumps, timeout=self.settings.terminate_grace_seconds)

    async def __aenter__(self) -> "ProcessSupervisor":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    async def _start(
        self, options: SpawnOptions, output_format: OutputFormat
    ) -> tuple[ManagedProcess, asyncio.Task[int]]:
        options = self._with_defaults(options)
        argv = [*self.settings.agent_command, *build_agent_args(options, output_format)]
        process = await launch(argv, self.settings, cwd=options.cwd)

        handle = new_process_handle()
        managed = ManagedProcess(
            handle=handle,
            process=process,
            output_format=output_format,
            started_at=datetime.now(UTC),
            session_id=options.session_id,
        )
        self._processes[handle] = managed
        self._live[handle] = managed
        logger.info(f"Spawned {handle} (pid {process.pid}, {output_format.value}) in {options.cwd or os.getcwd()}")

        if managed.streaming:
            self.bus.publish(HostEvent(HostEventKind.STREAM_START, handle))
        pump = asyncio.create_task(self._pump(managed), name=f"pump-{handle}")
        managed.pump = pump
        pump.add_done_callback(lambda _: self._live.pop(handle, None))
        return managed, pump

    # --- Output routing ---

    async def _pump(self, managed: ManagedProcess) -> int:
        process = managed.process
        stdout, stderr = process.stdout, process.stderr
        if stdout is None or stderr is None:
            _kill(process)
            raise SpawnError(f"{managed.handle} was launched without output pipes")

        try:
            await asyncio.gather(
                self._read(managed, stdout, self._on_stdout),
                self._read(managed, stderr, self._on_stderr),
            )
        except asyncio.CancelledError:
            _kill(process)
            raise
        except Exception as e:
            # the pipes are unusable; stop the process so it can be reaped
            logger.error(f"Reading output of {managed.handle} failed: {e}")
            _kill(process)
        finally:
            self.framer.discard(managed.handle)
            # a racing cancel may already have removed it
            self._processes.pop(managed.handle, None)

        exit_code = await process.wait()
        if exit_code != 0 and not managed.cancelled:
            logger.warning(f"{managed.handle} exited with code {exit_code}: {managed.stderr_tail[-200:]}")
        else:
            logger.info(f"{managed.handle} exited with code {exit_code}")

        if managed.streaming:
            data: dict[str, object] = {
                "code": exit_code,
                "sessionId": managed.session_id,
                "cancelled": managed.cancelled,
            }
            if exit_code != 0:
                data["error"] = tail(managed.stderr_tail, self.settings.error_tail_chars) or None
            self.bus.publish(HostEvent(HostEventKind.STREAM_END, managed.handle, data))
        return exit_code

    async def _read(
        self,
        managed: ManagedProcess,
        stream: asyncio.StreamReader,
        handler: Callable[[ManagedProcess, bytes], None],
    ) -> None:
        while True:
            chunk = await stream.read(self.settings.read_chunk_size)
            if not chunk:
                return
            try:
                handler(managed, chunk)
            except Exception as e:
                # one bad chunk must not stop the stream or leave the process unreaped
                logger.error(f"Dropped output chunk from {managed.handle}: {e}")

    def _on_stdout(self, managed: ManagedProcess, chunk: bytes) -> None:
        handle = managed.handle
        self.bus.publish(HostEvent(HostEventKind.PROGRESS, handle, {"chunk": chunk.decode("utf-8", errors="replace")}))

        if not managed.streaming:
            managed.stdout_chunks.append(chunk)
            return

        for record in self.framer.feed(handle, chunk):
            event = classify(record)
            if isinstance(event, ParseSkip):
                if event.reason != "blank":
                    logger.debug(f"Skipping {event.reason} record from {handle}: {event.record[:80]}")
                continue

            if isinstance(event, (InitEvent, TerminalResultEvent)) and event.session_id:
                managed.session_id = event.session_id

            self.bus.publish(HostEvent(HostEventKind.STREAM_EVENT, handle, {"event": event.raw}, event=event))
            if isinstance(event, TextDeltaEvent) and event.text:
                self.bus.publish(HostEvent(HostEventKind.STREAM_TEXT, handle, {"text": event.text}))

    def _on_stderr(self, managed: ManagedProcess, chunk: bytes) -> None:
        text = chunk.decode("utf-8", errors="replace")
        managed.stderr_tail = (managed.stderr_tail + text)[-self.settings.error_tail_chars :]
        self.bus.publish(HostEvent(HostEventKind.STDERR, managed.handle, {"data": text}))

    def _with_defaults(self, options: SpawnOptions) -> SpawnOptions:
        updates = {}
        if options.permission_mode is None and self.settings.default_permission_mode is not None:
            updates["permission_mode"] = self.settings.default_permission_mode
        if options.model is None and self.settings.default_model:
            updates["model"] = self.settings.default_model
        return options.model_copy(update=updates) if updates else options


def _interrupt(process: asyncio.subprocess.Process) -> None:
    """Send a graceful interrupt to a process and its group."""
    try:
        if os.name == "nt":
            process.terminate()
        else:
            os.killpg(os.getpgid(process.pid), signal.SIGINT)
    except (ProcessLookupError, PermissionError) as e:
        logger.debug(f"Interrupt of pid {process.pid} failed: {e}")


def _process_tree(pid: int) -> list[psutil.Process]:
    try:
        parent = psutil.Process(pid)
        return [*parent.children(recursive=True), parent]
    except psutil.NoSuchProcess:
        return []


def _kill(process: asyncio.subprocess.Process) -> None:
    """Force-stop a process and its group."""
    try:
        if os.name == "nt":
            process.kill()
        else:
            os.killpg(os.getpgid(process.pid), signal.SIGKILL)
    except (ProcessLookupError, PermissionError) as e:
        logger.debug(f"Kill of pid {process.pid} failed: {e}")
