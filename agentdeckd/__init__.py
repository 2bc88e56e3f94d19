"""agentdeckd: HTTP daemon and command-line client for agentdeck.

Exposes the process host (spawn, stream, cancel, list) over REST with
Server-Sent-Event subscriptions for process output.
"""

__version__ = "0.1.0"
