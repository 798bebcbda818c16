"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from devin_triage.models.domain import Message, MessageRole, Session, SessionHandle, SessionStatus, Ticket
from devin_triage.providers.base import SessionTransport


@pytest.fixture
def scope_payload() -> dict[str, Any]:
    """Valid ScopeResult payload as the agent would return it."""
    return {
        "scope": "Guard the config loader against empty files",
        "complexity": 4,
        "confidence_score": 85,
        "requirements": ["Handle empty config", "Add regression test"],
        "risks": ["Other loaders may share the bug"],
        "estimated_time": "3 hours",
    }


@pytest.fixture
def plan_payload() -> dict[str, Any]:
    """Valid PlanResult payload as the agent would return it."""
    return {
        "steps": ["Reproduce the crash", "Add empty-file check", "Write regression test"],
        "files_to_create": ["tests/test_config_empty.py"],
        "files_to_modify": ["app/config.py"],
        "testing_strategy": "Unit test for the empty-file case",
        "dependencies": [],
        "success_criteria": ["App starts with an empty config file"],
    }


@pytest.fixture
def sample_ticket() -> Ticket:
    """Sample ticket for testing."""
    return Ticket(
        number=42,
        title="Fix crash on startup",
        body="The app crashes when the config file is empty.",
        labels=frozenset({"bug"}),
        owner="acme",
        repo_name="widgets",
        author="testuser",
        url="https://github.com/acme/widgets/issues/42",
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def make_session() -> Callable[..., Session]:
    """Factory for Session snapshots.

    ``replies`` become assistant messages following one initial user prompt.
    """

    def _make(
        status: SessionStatus = SessionStatus.FINISHED,
        structured_output: Any | None = None,
        replies: list[str] | None = None,
        messages: list[Message] | None = None,
        session_id: str = "devin-abc123",
    ) -> Session:
        if messages is None:
            messages = [Message(MessageRole.USER, "prompt")]
            messages += [Message(MessageRole.ASSISTANT, text) for text in replies or []]
        return Session(
            session_id=session_id,
            url=f"https://app.devin.ai/sessions/{session_id}",
            status=status,
            structured_output=structured_output,
            messages=messages,
        )

    return _make


@pytest.fixture
def mock_transport() -> AsyncMock:
    """Mock SessionTransport with a default create_session result."""
    transport = AsyncMock(spec=SessionTransport)
    transport.create_session.return_value = SessionHandle(
        session_id="devin-abc123",
        url="https://app.devin.ai/sessions/devin-abc123",
    )
    return transport
