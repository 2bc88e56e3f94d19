"""Turn content reconstruction for agentdeck library.

Public Interface:
    - ToolActivityTracker: Deduplicated tool activity registry
    - TurnReconstructor: Ordered text/tool block reconstruction for one turn
    - TurnOutcome: Final content of a reconstructed turn
"""

from .engine import TurnOutcome
from .engine import TurnReconstructor
from .tracker import ToolActivityTracker

__all__ = [
    "ToolActivityTracker",
    "TurnOutcome",
    "TurnReconstructor",
]
