"""
Process tests for the supervisor.

Drives tests/fixtures/fake_agent.py as a real subprocess to exercise
spawning, output routing, exit handling, cancellation and shutdown.
"""

import asyncio
import sys

import pytest

from agentdeck_library.config.settings import AgentDeckSettings
from agentdeck_library.errors import ParseError
from agentdeck_library.errors import ProcessError
from agentdeck_library.errors import SpawnError
from agentdeck_library.models.events import TerminalResultEvent
from agentdeck_library.models.process import SpawnOptions
from agentdeck_library.process.supervisor import ProcessSupervisor
from agentdeck_library.streaming.emitter import HostEvent
from agentdeck_library.streaming.emitter import HostEventKind


def record_events(supervisor: ProcessSupervisor) -> list[HostEvent]:
    events: list[HostEvent] = []
    for kind in HostEventKind:
        supervisor.bus.on(kind, events.append)
    return events


def of_kind(events: list[HostEvent], kind: HostEventKind) -> list[HostEvent]:
    return [e for e in events if e.kind == kind]


async def wait_until(predicate, timeout: float = 10.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


async def wait_for_end(events: list[HostEvent], handle: str, timeout: float = 10.0) -> HostEvent:
    async def poll() -> HostEvent:
        while True:
            for event in events:
                if event.kind == HostEventKind.STREAM_END and event.process_id == handle:
                    return event
            await asyncio.sleep(0.01)

    return await asyncio.wait_for(poll(), timeout)


@pytest.mark.integration
class TestRun:
    """Test non-streaming turns."""

    @pytest.mark.asyncio
    async def test_run_returns_decoded_response(self, supervisor: ProcessSupervisor) -> None:
        response = await supervisor.run(SpawnOptions(prompt="hello"))

        assert response.text() == "echo: hello"
        assert response.session_id == "sess-new"
        assert response.usage.input_tokens == 10
        assert response.process_id is not None
        assert response.process_id.startswith("proc-")

    @pytest.mark.asyncio
    async def test_run_passes_resume_identifier(self, supervisor: ProcessSupervisor) -> None:
        response = await supervisor.run(SpawnOptions(prompt="again", session_id="sess-42"))

        assert response.session_id == "sess-42"

    @pytest.mark.asyncio
    async def test_resume_latest_uses_continue(self, supervisor: ProcessSupervisor) -> None:
        response = await supervisor.resume_latest(SpawnOptions(prompt="more", session_id="ignored"))

        assert response.session_id == "sess-latest"

    @pytest.mark.asyncio
    async def test_noisy_output_decodes_via_fallback(self, supervisor: ProcessSupervisor) -> None:
        response = await supervisor.run(SpawnOptions(prompt="garbage please"))

        assert response.text() == "echo: garbage please"

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_process_error_with_stderr(self, supervisor: ProcessSupervisor) -> None:
        with pytest.raises(ProcessError) as exc_info:
            await supervisor.run(SpawnOptions(prompt="fail now"))

        assert exc_info.value.exit_code == 2
        assert "boom: agent crashed" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_undecodable_output_raises_parse_error(self, supervisor: ProcessSupervisor) -> None:
        with pytest.raises(ParseError) as exc_info:
            await supervisor.run(SpawnOptions(prompt="not json"))

        assert "definitely not json" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_missing_executable_raises_spawn_error(self) -> None:
        settings = AgentDeckSettings(agent_command=["agentdeck-no-such-binary-xyz"])
        supervisor = ProcessSupervisor(settings)

        with pytest.raises(SpawnError):
            await supervisor.run(SpawnOptions(prompt="hi"))

        assert supervisor.list_processes() == set()

    @pytest.mark.asyncio
    async def test_finished_process_leaves_registry(self, supervisor: ProcessSupervisor) -> None:
        await supervisor.run(SpawnOptions(prompt="hello"))

        assert supervisor.list_processes() == set()

    @pytest.mark.asyncio
    async def test_progress_events_carry_raw_chunks(self, supervisor: ProcessSupervisor) -> None:
        events = record_events(supervisor)

        await supervisor.run(SpawnOptions(prompt="hello"))

        progress = "".join(e.data["chunk"] for e in of_kind(events, HostEventKind.PROGRESS))
        assert '"echo: hello"' in progress
        assert of_kind(events, HostEventKind.STREAM_START) == []


@pytest.mark.integration
class TestStream:
    """Test streaming turns."""

    @pytest.mark.asyncio
    async def test_stream_returns_registered_handle_immediately(self, supervisor: ProcessSupervisor) -> None:
        events = record_events(supervisor)

        handle = await supervisor.stream(SpawnOptions(prompt="hello"))

        assert handle in supervisor.list_processes()
        assert of_kind(events, HostEventKind.STREAM_START)[0].process_id == handle
        assert await supervisor.wait(handle) == 0

    @pytest.mark.asyncio
    async def test_stream_publishes_text_events_and_end(self, supervisor: ProcessSupervisor) -> None:
        events = record_events(supervisor)

        handle = await supervisor.stream(SpawnOptions(prompt="hello"))
        end = await wait_for_end(events, handle)

        text = "".join(e.data["text"] for e in of_kind(events, HostEventKind.STREAM_TEXT))
        assert text == "Hello world"
        assert end.data["code"] == 0
        assert end.data["sessionId"] == "sess-new"
        assert end.data["cancelled"] is False
        assert handle not in supervisor.list_processes()

    @pytest.mark.asyncio
    async def test_stream_events_are_classified_in_order(self, supervisor: ProcessSupervisor) -> None:
        events = record_events(supervisor)

        handle = await supervisor.stream(SpawnOptions(prompt="tools"))
        await wait_for_end(events, handle)

        kinds = [e.event.kind for e in of_kind(events, HostEventKind.STREAM_EVENT)]
        assert kinds == ["init", "text_delta", "assistant", "text_delta", "user", "result"]
        result = of_kind(events, HostEventKind.STREAM_EVENT)[-1].event
        assert isinstance(result, TerminalResultEvent)
        assert result.usage is not None

    @pytest.mark.asyncio
    async def test_malformed_lines_are_skipped(self, supervisor: ProcessSupervisor) -> None:
        events = record_events(supervisor)

        handle = await supervisor.stream(SpawnOptions(prompt="noise"))
        end = await wait_for_end(events, handle)

        kinds = [e.event.kind for e in of_kind(events, HostEventKind.STREAM_EVENT)]
        assert kinds == ["init", "text_delta", "text_delta", "assistant", "result"]
        assert end.data["code"] == 0

    @pytest.mark.asyncio
    async def test_stderr_is_surfaced_and_failure_reported(self, supervisor: ProcessSupervisor) -> None:
        events = record_events(supervisor)

        handle = await supervisor.stream(SpawnOptions(prompt="stream-fail"))
        end = await wait_for_end(events, handle)

        stderr = "".join(e.data["data"] for e in of_kind(events, HostEventKind.STDERR))
        assert "exploded" in stderr
        assert end.data["code"] == 3
        assert "exploded" in end.data["error"]

    @pytest.mark.asyncio
    async def test_concurrent_streams_are_routed_by_handle(self, supervisor: ProcessSupervisor) -> None:
        events = record_events(supervisor)

        first = await supervisor.stream(SpawnOptions(prompt="hello"))
        second = await supervisor.stream(SpawnOptions(prompt="tools"))
        assert first != second
        await wait_for_end(events, first)
        await wait_for_end(events, second)

        for handle in (first, second):
            text = "".join(e.data["text"] for e in of_kind(events, HostEventKind.STREAM_TEXT) if e.process_id == handle)
            assert text == "Hello world"

    @pytest.mark.asyncio
    async def test_deeply_nested_line_is_skipped(self, supervisor: ProcessSupervisor) -> None:
        """Test a line that overflows the JSON decoder does not end the stream.

        Given: A stream with a 100000-deep nested array between valid records
        When: The turn runs to completion
        Then: Later records still arrive and stream-end is published
        """
        events = record_events(supervisor)

        handle = await supervisor.stream(SpawnOptions(prompt="deep"))
        end = await wait_for_end(events, handle)

        text = "".join(e.data["text"] for e in of_kind(events, HostEventKind.STREAM_TEXT))
        assert text == "after"
        assert end.data["code"] == 0
        assert end.data["sessionId"] == "sess-new"

    @pytest.mark.asyncio
    async def test_failing_output_handler_still_ends_stream(self, supervisor: ProcessSupervisor) -> None:
        """Test an exception while routing one chunk is contained.

        Given: A stdout handler that raises on its first chunk
        When: A streaming turn runs
        Then: The process is reaped and stream-end is still published
        """
        events = record_events(supervisor)
        route = supervisor._on_stdout
        calls = []

        def flaky(managed, chunk: bytes) -> None:
            calls.append(chunk)
            if len(calls) == 1:
                raise RuntimeError("handler exploded")
            route(managed, chunk)

        supervisor._on_stdout = flaky

        handle = await supervisor.stream(SpawnOptions(prompt="hello"))
        end = await wait_for_end(events, handle)

        assert end.data["code"] == 0
        assert handle not in supervisor.list_processes()


@pytest.mark.integration
class TestCancelAndShutdown:
    """Test cancellation and teardown."""

    @pytest.mark.asyncio
    async def test_cancel_removes_handle_immediately(self, supervisor: ProcessSupervisor) -> None:
        """Test cancel unregisters before the process has exited.

        Given: A streaming turn that sleeps after its first delta
        When: The handle is cancelled
        Then: It is gone from list_processes() at once and the process exits
        """
        events = record_events(supervisor)
        handle = await supervisor.stream(SpawnOptions(prompt="slow"))

        assert await supervisor.cancel(handle) is True
        assert handle not in supervisor.list_processes()

        end = await wait_for_end(events, handle)
        assert end.data["cancelled"] is True

    @pytest.mark.asyncio
    async def test_cancel_unknown_or_finished_handle_returns_false(self, supervisor: ProcessSupervisor) -> None:
        assert await supervisor.cancel("proc-unknown") is False

        response = await supervisor.run(SpawnOptions(prompt="hello"))
        assert await supervisor.cancel(response.process_id) is False

    @pytest.mark.asyncio
    async def test_double_cancel_is_harmless(self, supervisor: ProcessSupervisor) -> None:
        handle = await supervisor.stream(SpawnOptions(prompt="slow"))

        assert await supervisor.cancel(handle) is True
        assert await supervisor.cancel(handle) is False
        await supervisor.wait(handle)

    @pytest.mark.asyncio
    async def test_shutdown_terminates_every_registered_process(self, fake_agent_settings: AgentDeckSettings) -> None:
        supervisor = ProcessSupervisor(fake_agent_settings)
        handles = [await supervisor.stream(SpawnOptions(prompt="slow")) for _ in range(2)]
        processes = [supervisor.get(handle).process for handle in handles]

        await supervisor.shutdown()

        assert supervisor.list_processes() == set()
        for process in processes:
            assert process.returncode is not None

    @pytest.mark.asyncio
    async def test_cancelled_run_interrupts_its_process(self, supervisor: ProcessSupervisor) -> None:
        """Test cancelling the caller of run() does not orphan the process.

        Given: A non-streaming turn whose process sleeps
        When: The task awaiting run() is cancelled
        Then: The handle is unregistered and the process exits
        """
        task = asyncio.create_task(supervisor.run(SpawnOptions(prompt="hang")))
        await wait_until(lambda: len(supervisor.list_processes()) == 1)
        (handle,) = supervisor.list_processes()
        process = supervisor.get(handle).process

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert supervisor.list_processes() == set()
        await asyncio.wait_for(process.wait(), timeout=10.0)
        assert process.returncode is not None

    @pytest.mark.asyncio
    async def test_shutdown_kills_cancelled_process_that_ignores_interrupt(
        self, fake_agent_settings: AgentDeckSettings
    ) -> None:
        """Test shutdown reaches processes that were cancelled but never exited.

        Given: A cancelled streaming turn whose process ignores SIGINT
        When: The supervisor shuts down
        Then: The process is terminated anyway
        """
        supervisor = ProcessSupervisor(fake_agent_settings)
        events = record_events(supervisor)
        handle = await supervisor.stream(SpawnOptions(prompt="stubborn"))
        process = supervisor.get(handle).process
        await wait_until(lambda: bool(of_kind(events, HostEventKind.STREAM_TEXT)))

        assert await supervisor.cancel(handle) is True
        await asyncio.sleep(0.2)
        assert process.returncode is None

        await supervisor.shutdown()

        assert process.returncode is not None
        end = await wait_for_end(events, handle)
        assert end.data["cancelled"] is True


@pytest.mark.integration
@pytest.mark.skipif(sys.platform == "win32", reason="shell quoting differs on Windows")
class TestShellLaunch:
    """Test launching through the shell."""

    @pytest.mark.asyncio
    async def test_shell_launch_preserves_prompt_with_spaces(self, fake_agent_settings: AgentDeckSettings) -> None:
        settings = fake_agent_settings.model_copy(update={"use_shell": True})
        async with ProcessSupervisor(settings) as supervisor:
            response = await supervisor.run(SpawnOptions(prompt="hello there friend"))

        assert response.text() == "echo: hello there friend"

    @pytest.mark.asyncio
    async def test_shell_launch_passes_metacharacters_verbatim(
        self, fake_agent_settings: AgentDeckSettings, tmp_path
    ) -> None:
        """Test quotes and command substitution reach the agent unexpanded.

        Given: A prompt containing double quotes and $(...)
        When: It is run through the shell
        Then: The agent sees the exact text and nothing is executed
        """
        marker = tmp_path / "executed"
        prompt = f'say "hi" $(touch {marker}) `touch {marker}` $HOME'
        settings = fake_agent_settings.model_copy(update={"use_shell": True})
        async with ProcessSupervisor(settings) as supervisor:
            response = await supervisor.run(SpawnOptions(prompt=prompt))

        assert response.text() == f"echo: {prompt}"
        assert not marker.exists()
