"""AgentDeck library layer.

Supervises external agent processes and turns their line-delimited JSON
output into ordered conversation content. The daemon (agentdeckd) is a
thin transport over this package.

Public Interface:
    Modules:
    - streaming: Line framing, event classification, host event bus
    - reconstruction: Tool activity tracking and turn content reconstruction
    - process: Subprocess supervision, command building, response decoding
    - sessions: Session/usage aggregation and the conversation client
    - config: Settings loading
    - storage: Home directory layout
    - models: Shared data structures
"""

# Re-export key types for convenience
from .errors import AgentDeckError
from .errors import ParseError
from .errors import ProcessError
from .errors import SpawnError
from .process import ProcessSupervisor
from .sessions import Conversation
from .sessions import ConversationOptions

__all__ = [
    "AgentDeckError",
    "ParseError",
    "ProcessError",
    "SpawnError",
    "ProcessSupervisor",
    "Conversation",
    "ConversationOptions",
]
