"""Tests for devin_triage/engine/orchestrator.py - poll loop and result resolution."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from devin_triage.engine import heuristics
from devin_triage.engine.orchestrator import SessionOrchestrator
from devin_triage.exceptions import PollTimeoutError, PreconditionError, TransportError
from devin_triage.models.domain import Message, MessageRole, SessionStatus, StageName
from devin_triage.models.results import PlanResult, ScopeResult


@pytest.fixture
def orchestrator(mock_transport):
    return SessionOrchestrator(mock_transport, poll_interval=5.0, poll_timeout=300.0)


@pytest.fixture
def fallback(sample_ticket):
    """Heuristic scope fallback wrapped so calls can be asserted."""
    return MagicMock(side_effect=lambda: heuristics.score(sample_ticket))


class TestCreateAndDrive:
    """Tests for the create-then-poll loop."""

    @pytest.mark.asyncio
    async def test_polls_until_finished(self, orchestrator, mock_transport, make_session, scope_payload):
        """Running, running, finished: three fetches and two sleeps."""
        mock_transport.get_session.side_effect = [
            make_session(SessionStatus.RUNNING),
            make_session(SessionStatus.RUNNING),
            make_session(SessionStatus.FINISHED, structured_output=scope_payload),
        ]
        statuses = []

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            session = await orchestrator.create_and_drive(
                "analyze", schema={"type": "object"}, tags=["scope"], on_status=statuses.append
            )

        assert session.status == SessionStatus.FINISHED
        assert mock_transport.get_session.await_count == 3
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(5.0)
        assert statuses == [SessionStatus.RUNNING, SessionStatus.RUNNING, SessionStatus.FINISHED]
        mock_transport.create_session.assert_awaited_once_with(
            "analyze", tags=["scope"], output_schema={"type": "object"}
        )

    @pytest.mark.asyncio
    async def test_stops_on_blocked(self, orchestrator, mock_transport, make_session):
        """A blocked session ends one-shot polling on the first tick."""
        mock_transport.get_session.return_value = make_session(SessionStatus.BLOCKED, replies=["done"])

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            session = await orchestrator.create_and_drive("analyze")

        assert session.status == SessionStatus.BLOCKED
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stops_on_expired(self, orchestrator, mock_transport, make_session):
        mock_transport.get_session.return_value = make_session(SessionStatus.EXPIRED)

        session = await orchestrator.create_and_drive("analyze")

        assert session.status == SessionStatus.EXPIRED
        mock_transport.get_session.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_raises(self, mock_transport, make_session):
        """A session that never settles raises PollTimeoutError."""
        mock_transport.get_session.return_value = make_session(SessionStatus.RUNNING)
        orchestrator = SessionOrchestrator(mock_transport, poll_interval=0.01, poll_timeout=0.05)

        with pytest.raises(PollTimeoutError) as exc_info:
            await orchestrator.create_and_drive("analyze")

        assert exc_info.value.session_id == "devin-abc123"
        assert exc_info.value.timeout_seconds == 0.05
        assert mock_transport.get_session.await_count >= 2

    @pytest.mark.asyncio
    async def test_sleep_never_exceeds_remaining_time(self, mock_transport, make_session):
        """The last sleep is shortened to the time left before the ceiling."""
        mock_transport.get_session.return_value = make_session(SessionStatus.RUNNING)
        orchestrator = SessionOrchestrator(mock_transport, poll_interval=5.0, poll_timeout=12.0)
        now = [0.0]
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            now[0] += seconds

        with (
            patch("devin_triage.engine.orchestrator.time") as mock_time,
            patch("asyncio.sleep", new=fake_sleep),
        ):
            mock_time.monotonic.side_effect = lambda: now[0]
            with pytest.raises(PollTimeoutError):
                await orchestrator.create_and_drive("analyze")

        assert sleeps == [5.0, 5.0, 2.0]
        assert mock_transport.get_session.await_count == 4

    @pytest.mark.asyncio
    async def test_default_interval_and_ceiling(self, mock_transport, make_session):
        """Default construction polls every 5 s and gives up at 300 s."""
        mock_transport.get_session.return_value = make_session(SessionStatus.RUNNING)
        orchestrator = SessionOrchestrator(mock_transport)
        now = [0.0]
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            now[0] += seconds

        with (
            patch("devin_triage.engine.orchestrator.time") as mock_time,
            patch("asyncio.sleep", new=fake_sleep),
        ):
            mock_time.monotonic.side_effect = lambda: now[0]
            with pytest.raises(PollTimeoutError) as exc_info:
                await orchestrator.create_and_drive("analyze")

        assert exc_info.value.timeout_seconds == 300
        assert set(sleeps) == {5.0}
        assert len(sleeps) == 60
        assert now[0] == 300.0
        assert mock_transport.get_session.await_count == 61

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, orchestrator, mock_transport):
        mock_transport.create_session.side_effect = TransportError("boom", status_code=500)

        with pytest.raises(TransportError):
            await orchestrator.create_and_drive("analyze")

        mock_transport.get_session.assert_not_awaited()


class TestStart:
    """Tests for fire-and-forget session creation."""

    @pytest.mark.asyncio
    async def test_start_does_not_poll(self, orchestrator, mock_transport):
        handle = await orchestrator.start("execute", tags=["execute"])

        assert handle.session_id == "devin-abc123"
        mock_transport.create_session.assert_awaited_once_with("execute", tags=["execute"])
        mock_transport.get_session.assert_not_awaited()


class TestContinueSession:
    """Tests for follow-ups on blocked sessions."""

    @pytest.mark.asyncio
    async def test_ignores_stale_reply(self, orchestrator, mock_transport, make_session, plan_payload):
        """A blocked snapshot carrying only the old reply keeps the loop going."""
        before = make_session(SessionStatus.BLOCKED, replies=["scope answer"])
        stale = make_session(
            SessionStatus.BLOCKED,
            messages=[*before.messages, Message(MessageRole.USER, "now plan")],
        )
        answered = make_session(
            SessionStatus.BLOCKED,
            messages=[*stale.messages, Message(MessageRole.ASSISTANT, json.dumps(plan_payload))],
        )
        mock_transport.get_session.side_effect = [before, stale, answered]

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            session = await orchestrator.continue_session("devin-abc123", "now plan")

        assert session is answered
        assert mock_sleep.await_count == 1
        mock_transport.send_message.assert_awaited_once_with("devin-abc123", "now plan")

    @pytest.mark.asyncio
    async def test_terminal_session_rejected(self, orchestrator, mock_transport, make_session):
        mock_transport.get_session.return_value = make_session(SessionStatus.FINISHED)

        with pytest.raises(PreconditionError, match="cannot be continued"):
            await orchestrator.continue_session("devin-abc123", "now plan")

        mock_transport.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_finishing_after_followup_stops(self, orchestrator, mock_transport, make_session):
        """A terminal status ends the loop even without a new reply."""
        mock_transport.get_session.side_effect = [
            make_session(SessionStatus.BLOCKED, replies=["scope"]),
            make_session(SessionStatus.FINISHED, replies=["scope"]),
        ]

        session = await orchestrator.continue_session("devin-abc123", "now plan")

        assert session.status == SessionStatus.FINISHED


class TestResolveResult:
    """Tests for the three-tier result resolution."""

    def test_structured_output_wins(self, orchestrator, make_session, scope_payload, fallback):
        """Tier 1 beats a conflicting assistant message."""
        other = dict(scope_payload, complexity=9)
        session = make_session(structured_output=scope_payload, replies=[json.dumps(other)])

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.result.complexity == 4
        assert result.used_fallback is False
        assert result.session_id == "devin-abc123"
        assert result.session_url == "https://app.devin.ai/sessions/devin-abc123"
        assert result.session_status == SessionStatus.FINISHED
        fallback.assert_not_called()

    def test_structured_output_as_json_string(self, orchestrator, make_session, scope_payload, fallback):
        session = make_session(structured_output=json.dumps(scope_payload))

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.result.estimated_time == "3 hours"
        assert result.used_fallback is False

    def test_message_with_prose_and_fence(self, orchestrator, make_session, scope_payload, fallback):
        """Tier 2 extracts the object from a chatty reply."""
        reply = f"Here is my analysis:\n```json\n{json.dumps(scope_payload)}\n```\nLet me know."
        session = make_session(SessionStatus.BLOCKED, replies=["thinking...", reply])

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.result.scope == scope_payload["scope"]
        assert result.used_fallback is False

    def test_invalid_structured_output_falls_to_message(self, orchestrator, make_session, scope_payload, fallback):
        """Out-of-range structured output is skipped, not clamped."""
        bad = dict(scope_payload, complexity=15)
        session = make_session(structured_output=bad, replies=[json.dumps(scope_payload)])

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.result.complexity == 4
        assert result.used_fallback is False

    def test_out_of_range_everywhere_uses_fallback(self, orchestrator, make_session, scope_payload, fallback):
        bad = dict(scope_payload, confidence_score=0)
        session = make_session(structured_output=bad, replies=[json.dumps(bad)])

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.used_fallback is True
        assert result.result.complexity == 2

    def test_only_last_assistant_message_counts(self, orchestrator, make_session, scope_payload, fallback):
        """An earlier valid reply does not rescue an unparseable last one."""
        session = make_session(replies=[json.dumps(scope_payload), "Actually, let me reconsider."])

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.used_fallback is True
        fallback.assert_called_once()

    def test_user_messages_are_not_answers(self, orchestrator, make_session, scope_payload, fallback):
        session = make_session(messages=[Message(MessageRole.USER, json.dumps(scope_payload))])

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.used_fallback is True

    @pytest.mark.parametrize("structured_output", [None, {}, ""])
    def test_nothing_usable_keeps_session_attached(self, orchestrator, make_session, fallback, structured_output):
        """The fallback result still carries the session that produced nothing."""
        session = make_session(SessionStatus.EXPIRED, structured_output=structured_output)

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.used_fallback is True
        assert result.session_id == "devin-abc123"
        assert result.session_status == SessionStatus.EXPIRED
        assert result.stage == StageName.SCOPE

    def test_plan_model_rejects_scope_payload(self, orchestrator, make_session, scope_payload, plan_payload):
        """Leftover scope output on a continued session is not a plan."""
        session = make_session(
            SessionStatus.BLOCKED, structured_output=scope_payload, replies=[json.dumps(plan_payload)]
        )
        plan_fallback = MagicMock()

        result = orchestrator.resolve_result(session, PlanResult, plan_fallback, StageName.PLAN)

        assert result.result.steps == plan_payload["steps"]
        assert result.used_fallback is False
        plan_fallback.assert_not_called()

    def test_deeply_nested_reply_uses_fallback(self, orchestrator, make_session, fallback):
        """A reply too deep for the JSON decoder degrades to the fallback."""
        session = make_session(replies=['{"a":' + "[" * 100000 + "}"])

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.used_fallback is True
        fallback.assert_called_once()

    def test_deeply_nested_structured_string_falls_through(self, orchestrator, make_session, scope_payload, fallback):
        session = make_session(
            structured_output='{"a":' + "[" * 100000 + "}",
            replies=[json.dumps(scope_payload)],
        )

        result = orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)

        assert result.used_fallback is False
        assert result.result.complexity == 4
