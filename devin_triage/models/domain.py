"""
Domain models for devin-triage.

This module contains the data classes and enums for the entities the
orchestration core works with: tickets read from the issue tracker, remote
agent sessions and their messages, and the provenance-carrying results
each workflow stage hands back to its caller.

Example:
    Creating a ticket from tracker data::

        ticket = Ticket(
            number=42,
            title="Fix crash on startup",
            body="The app crashes when the config file is empty",
            labels=frozenset({"bug"}),
            owner="acme",
            repo_name="widgets",
        )
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class SessionStatus(str, Enum):
    """Normalized status of a remote agent session.

    The remote service reports a richer set of states; the transport folds
    them into these four. Only the server moves a session between states.
    """

    RUNNING = "running"
    """Agent is working. Keep polling."""

    BLOCKED = "blocked"
    """Agent is waiting for operator input.

    The session can still be continued with a follow-up message. One-shot
    stages stop polling here and read whatever output is available.
    """

    FINISHED = "finished"
    """Session completed. Terminal."""

    EXPIRED = "expired"
    """Session ended without completing (expired or suspended). Terminal."""

    @property
    def is_terminal(self) -> bool:
        """Whether the session can no longer change state."""
        return self in (SessionStatus.FINISHED, SessionStatus.EXPIRED)


class MessageRole(str, Enum):
    """Author of a session message."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class StageName(str, Enum):
    """Ticket lifecycle stages driven by the workflow coordinator."""

    SCOPE = "scope"
    PLAN = "plan"
    EXECUTE = "execute"


@dataclass(frozen=True)
class Ticket:
    """An issue-tracker ticket.

    Immutable input to every stage. Only ``number``, ``title``, ``body``,
    ``labels``, ``owner`` and ``repo_name`` feed the prompts and the
    heuristic; the rest is tracker metadata carried for display.
    """

    number: int
    title: str
    body: str
    labels: frozenset[str]
    owner: str
    repo_name: str
    state: str = "open"
    assignees: tuple[str, ...] = ()
    author: str = ""
    url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def repository(self) -> str:
        """Full ``owner/name`` repository slug."""
        return f"{self.owner}/{self.repo_name}"


@dataclass(frozen=True)
class Message:
    """One entry of a session conversation."""

    role: MessageRole
    text: str


@dataclass
class SessionHandle:
    """Identifiers returned when a session is created."""

    session_id: str
    url: str


@dataclass
class Session:
    """Snapshot of a remote agent session.

    ``messages`` is in conversation order. ``structured_output`` holds the
    payload the agent wrote against the requested output schema, if any.
    """

    session_id: str
    url: str
    status: SessionStatus
    structured_output: Any | None = None
    messages: list[Message] = field(default_factory=list)

    def last_assistant_message(self, since: int = 0) -> Message | None:
        """Return the last agent-authored message at index ``since`` or later."""
        for message in reversed(self.messages[since:]):
            if message.role == MessageRole.ASSISTANT:
                return message
        return None


@dataclass
class StageResult(Generic[T]):
    """A stage payload together with its provenance.

    Consumers (comment posting, the CLI) use ``used_fallback`` and
    ``session_url`` to tell remote analysis from the local heuristic.

    Example:
        >>> result = await coordinator.scope(ticket)
        >>> if result.used_fallback:
        ...     print("heuristic estimate only")
    """

    stage: StageName
    result: T
    used_fallback: bool
    session_id: str | None = None
    session_url: str | None = None
    session_status: SessionStatus | None = None

    @property
    def is_continuable(self) -> bool:
        """Whether the originating session can accept a follow-up message."""
        return self.session_id is not None and self.session_status == SessionStatus.BLOCKED


@dataclass
class ExecutionHandle:
    """Receipt for a fire-and-forget execution session."""

    session_id: str
    session_url: str
    status: str = "started"
