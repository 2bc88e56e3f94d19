"""Session state and the conversation client."""

from .aggregator import SessionAggregator
from .conversation import Conversation
from .conversation import ConversationOptions

__all__ = ["Conversation", "ConversationOptions", "SessionAggregator"]
