"""Error taxonomy for agent turns.

Per-line failures never raise (see `streaming.classifier.ParseSkip`).
Per-turn failures raise one of the exceptions below and terminate that
turn only.
"""


class AgentDeckError(RuntimeError):
    """Base class for turn-level failures."""

    pass


class SpawnError(AgentDeckError):
    """Raised when the agent subprocess cannot be created."""

    pass


class ProcessError(AgentDeckError):
    """Raised when the agent subprocess exits non-zero.

    Attributes:
        exit_code: Process exit code
        detail: Bounded tail of captured stderr (or stdout when stderr is empty)
    """

    def __init__(self, exit_code: int, detail: str = "") -> None:
        self.exit_code = exit_code
        self.detail = detail
        message = f"Process exited with code {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ParseError(AgentDeckError):
    """Raised when a terminal payload cannot be decoded, even after fallback extraction.

    Attributes:
        detail: Bounded tail of the undecodable payload
    """

    def __init__(self, message: str, detail: str = "") -> None:
        self.detail = detail
        super().__init__(message)
