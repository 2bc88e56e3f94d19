"""Cross-turn session state.

Contract:
- Inputs: Turn completions (session identifier, usage delta)
- Outputs: Current resumable session identifier, cumulative UsageStats
- Side Effects: None
"""

import logging

from ..models.messages import UsageStats
from ..models.process import TokenUsage

logger = logging.getLogger(__name__)


class SessionAggregator:
    """Track the resumable session identifier and cumulative token usage.

    `usage.total_tokens` is computed from the two components, never stored.

    Example:
        >>> aggregator = SessionAggregator()
        >>> aggregator.on_turn_completed("s1", TokenUsage(input_tokens=3, output_tokens=4))
        >>> aggregator.usage.total_tokens
        7
    """

    def __init__(self) -> None:
        self.session_id: str | None = None
        self.usage = UsageStats()

    def on_turn_completed(self, session_id: str | None, usage_delta: TokenUsage | None) -> None:
        """Fold one finished turn into the session state.

        Args:
            session_id: Identifier reported by the turn; replaces the current one if present
            usage_delta: Token counts of the turn, added component-wise
        """
        if session_id:
            if self.session_id and session_id != self.session_id:
                logger.debug(f"Session moved from {self.session_id} to {session_id}")
            self.session_id = session_id

        if usage_delta is not None:
            self.usage = UsageStats(
                input_tokens=self.usage.input_tokens + usage_delta.input_tokens,
                output_tokens=self.usage.output_tokens + usage_delta.output_tokens,
            )

    def reset_session(self) -> None:
        """Forget the session identifier and zero usage."""
        self.session_id = None
        self.usage = UsageStats()
