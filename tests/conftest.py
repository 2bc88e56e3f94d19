"""
Shared pytest fixtures for agentdeck test suite.

Provides fixtures for:
- Temporary storage directories
- Settings that launch the fake agent script
- Process supervisors with guaranteed cleanup
"""

import sys
import tempfile
from collections.abc import AsyncGenerator
from collections.abc import Generator
from pathlib import Path

import pytest
import pytest_asyncio

from agentdeck_library.config.settings import AgentDeckSettings
from agentdeck_library.process.supervisor import ProcessSupervisor

FAKE_AGENT = Path(__file__).parent / "fixtures" / "fake_agent.py"


@pytest.fixture
def temp_storage_dir() -> Generator[Path, None, None]:
    """Create temporary storage directory for tests.

    Automatically cleaned up after test completes.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_storage_env(temp_storage_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point AGENTDECK_HOME at a temp directory.

    Example:
        >>> def test_with_isolated_storage(mock_storage_env):
        ...     from agentdeck_library.storage.paths import get_home_dir
        ...     assert get_home_dir() == mock_storage_env.resolve()
    """
    monkeypatch.setenv("AGENTDECK_HOME", str(temp_storage_dir))
    monkeypatch.delenv("AGENTDECK_CONFIG_DIR", raising=False)
    monkeypatch.delenv("AGENTDECK_LOG_DIR", raising=False)
    return temp_storage_dir


@pytest.fixture
def fake_agent_settings() -> AgentDeckSettings:
    """Settings whose agent command runs tests/fixtures/fake_agent.py."""
    return AgentDeckSettings(
        agent_command=[sys.executable, str(FAKE_AGENT)],
        terminate_grace_seconds=1.0,
        read_chunk_size=64,
    )


@pytest_asyncio.fixture
async def supervisor(fake_agent_settings: AgentDeckSettings) -> AsyncGenerator[ProcessSupervisor, None]:
    """Process supervisor that kills leftover fake agents on teardown."""
    async with ProcessSupervisor(fake_agent_settings) as sup:
        yield sup
