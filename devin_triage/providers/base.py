"""
Abstract base classes for providers.

This module defines the two collaborator interfaces the orchestration core
consumes: the ticket source (issue tracker) and the session transport
(remote agent protocol). Both are async to support non-blocking I/O.
"""

from abc import ABC, abstractmethod
from typing import Any

from devin_triage.models.domain import Session, SessionHandle, Ticket


class TicketSource(ABC):
    """Abstract base class for issue-tracker implementations.

    Implementations normalize tracker-specific payloads into ``Ticket``.
    Failures surface as exceptions with a human-readable message; the core
    treats them as non-retryable and lets them propagate unchanged.
    """

    @abstractmethod
    async def list_issues(
        self,
        state: str = "open",
        labels: list[str] | None = None,
        sort: str = "created",
    ) -> list[Ticket]:
        """Retrieve tickets from the repository.

        Args:
            state: "open", "closed", or "all"
            labels: Only return tickets carrying all of these labels
            sort: "created", "updated", or "comments"

        Returns:
            Tickets, newest first.
        """
        pass

    @abstractmethod
    async def get_issue(self, issue_number: int) -> Ticket:
        """Retrieve a single ticket by number."""
        pass

    @abstractmethod
    async def get_comments(self, issue_number: int) -> list[dict[str, Any]]:
        """Retrieve a ticket's comments as ``{id, user, body, created_at}`` dicts."""
        pass

    @abstractmethod
    async def add_comment(self, issue_number: int, text: str) -> None:
        """Post a markdown comment on a ticket."""
        pass

    @abstractmethod
    async def update_issue(self, issue_number: int, **patch: Any) -> Ticket:
        """Apply field updates (title, body, labels, state) to a ticket.

        Returns:
            The ticket as it reads after the update.
        """
        pass

    async def close_issue(self, issue_number: int) -> Ticket:
        """Close a ticket."""
        return await self.update_issue(issue_number, state="closed")


class SessionTransport(ABC):
    """Abstract binding of the remote agent's session protocol.

    A thin request layer: no polling, no retries, no interpretation of the
    conversation. Every failure is raised as ``TransportError``.
    """

    @abstractmethod
    async def create_session(
        self,
        prompt: str,
        tags: list[str] | None = None,
        output_schema: dict[str, Any] | None = None,
    ) -> SessionHandle:
        """Start a new session.

        Args:
            prompt: Fully rendered task prompt
            tags: Labels attached to the session for observability
            output_schema: JSON schema the agent's structured output should follow

        Returns:
            Identifiers of the new session.
        """
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Session:
        """Fetch the current state of a session."""
        pass

    @abstractmethod
    async def send_message(self, session_id: str, text: str) -> Session:
        """Send a follow-up message to a session.

        Returns:
            The session state after the message was accepted.
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
