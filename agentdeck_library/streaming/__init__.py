"""Stream protocol decoding for agentdeck library.

Public Interface:
    - LineFramer: Newline-delimited record framing per process handle
    - classify: Record classification into StreamEvent variants
    - ParseSkip: Sentinel for records that are silently ignored
    - HostEventBus: Passive subscriptions to process notifications
"""

from .classifier import ParseSkip
from .classifier import classify
from .emitter import HostEvent
from .emitter import HostEventBus
from .emitter import HostEventKind
from .framing import LineFramer

__all__ = [
    "LineFramer",
    "classify",
    "ParseSkip",
    "HostEvent",
    "HostEventBus",
    "HostEventKind",
]
