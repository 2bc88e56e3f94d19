"""Settings models for agentdeck.

Contract:
- Inputs: Environment variables, YAML files
- Outputs: Validated settings objects
- Side Effects: None (read-only)
"""

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from ..models.process import PermissionMode


class AgentDeckSettings(BaseSettings):
    """Configuration for the process host and the daemon.

    Attributes:
        agent_command: argv prefix used to launch the agent (default: ["claude"])
        use_shell: Launch through the shell with a quoted command line
        default_permission_mode: Permission mode when a request gives none
        default_model: Model selector when a request gives none
        error_tail_chars: Bound on diagnostic text carried by errors
        read_chunk_size: Bytes read from stdout/stderr per read call
        terminate_grace_seconds: Wait between terminate and kill on shutdown
        host: Daemon listen address
        port: Daemon listen port
        log_level: Logging level
        cors_origins: Origins allowed to call the daemon

    Example:
        >>> settings = AgentDeckSettings()
        >>> assert settings.agent_command == ["claude"]
        >>> assert settings.error_tail_chars == 500
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    agent_command: list[str] = Field(default_factory=lambda: ["claude"])
    use_shell: bool = False
    default_permission_mode: PermissionMode | None = None
    default_model: str | None = None

    error_tail_chars: int = Field(default=500, ge=1)
    read_chunk_size: int = Field(default=4096, ge=1)
    terminate_grace_seconds: float = Field(default=3.0, ge=0)

    host: str = "127.0.0.1"
    port: int = Field(default=8430, ge=1024, le=65535)
    log_level: str = "info"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    @field_validator("agent_command")
    @classmethod
    def require_executable(cls, v: list[str]) -> list[str]:
        """Reject an empty command prefix.

        Args:
            v: Command prefix

        Returns:
            The prefix unchanged
        """
        if not v or not v[0].strip():
            raise ValueError("agent_command must name an executable")
        return v
