"""Collaborator implementations for the issue tracker and the remote agent.

Key Components:
    - TicketSource: Abstract base for issue trackers
    - SessionTransport: Abstract base for remote agent session protocols
    - GitHubTicketSource: GitHub issues via PyGithub
    - DevinSessionTransport: Devin sessions via the Devin REST API
"""

from devin_triage.providers.base import SessionTransport, TicketSource

__all__ = [
    "SessionTransport",
    "TicketSource",
]
