"""
Session orchestration: drive one remote agent session to an interpretable result.

The orchestrator owns three concerns:

Poll Loop:
    After a session is created (or continued) the orchestrator fetches it
    every ``poll_interval`` seconds until it reaches a stop status. The
    ceiling is measured from loop entry with ``time.monotonic()``; crossing
    it raises ``PollTimeoutError`` with no partial result.

Status Classification:
    ``finished`` and ``expired`` are terminal. ``blocked`` means the agent
    is waiting for input; one-shot stages stop there and read the output.
    Anything else keeps the loop going. The orchestrator never changes a
    session's status itself.

Result Resolution:
    A strict trust hierarchy, first success wins:

    1. the session's structured output, validated against the payload model
    2. the last assistant message, JSON-extracted and validated
    3. the caller's fallback, flagged ``used_fallback=True``

    Parse failures in tiers 1 and 2 are absorbed; the fallback must not fail.

Example:
    >>> orchestrator = SessionOrchestrator(transport)
    >>> session = await orchestrator.create_and_drive(prompt, schema, ["scope"])
    >>> result = orchestrator.resolve_result(
    ...     session, ScopeResult, lambda: heuristics.score(ticket), StageName.SCOPE
    ... )
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from devin_triage.engine.extraction import parse_json_object
from devin_triage.exceptions import ParseError, PollTimeoutError, PreconditionError
from devin_triage.models.domain import Session, SessionHandle, SessionStatus, StageName, StageResult
from devin_triage.providers.base import SessionTransport

log = structlog.get_logger(__name__)

POLL_INTERVAL_SECONDS = 5.0
POLL_TIMEOUT_SECONDS = 300.0

ModelT = TypeVar("ModelT", bound=BaseModel)

StatusCallback = Callable[[SessionStatus], None]


class SessionOrchestrator:
    """Create, poll and interpret remote agent sessions.

    Holds no per-call state; one instance can serve concurrent stages for
    independent tickets.

    Attributes:
        transport: Session transport used for every remote call.
        poll_interval: Seconds to wait between poll ticks.
        poll_timeout: Wall-clock ceiling of one poll loop, in seconds.
    """

    def __init__(
        self,
        transport: SessionTransport,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        poll_timeout: float = POLL_TIMEOUT_SECONDS,
    ) -> None:
        self.transport = transport
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout

    async def start(self, prompt: str, tags: list[str] | None = None) -> SessionHandle:
        """Create a session without waiting on it."""
        return await self.transport.create_session(prompt, tags=tags)

    async def create_and_drive(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        tags: list[str] | None = None,
        on_status: StatusCallback | None = None,
    ) -> Session:
        """Create a session and poll it until it stops.

        Args:
            prompt: Fully rendered task prompt
            schema: Output schema the agent is asked to follow
            tags: Session tags for observability
            on_status: Called with the latest status on every poll tick

        Returns:
            The session snapshot at its stop status.

        Raises:
            TransportError: If any remote call fails
            PollTimeoutError: If the session does not stop within the ceiling
        """
        handle = await self.transport.create_session(prompt, tags=tags, output_schema=schema)
        log.info("session_created", session_id=handle.session_id, url=handle.url, tags=tags)
        return await self._poll(handle.session_id, on_status)

    async def continue_session(
        self,
        session_id: str,
        followup: str,
        on_status: StatusCallback | None = None,
    ) -> Session:
        """Send a follow-up to a blocked session and poll it again.

        Only assistant messages that arrive after the follow-up count as an
        answer, so a session that still reports ``blocked`` with its previous
        reply keeps being polled.

        Raises:
            PreconditionError: If the session has already ended
            TransportError: If any remote call fails
            PollTimeoutError: If no new answer arrives within the ceiling
        """
        current = await self.transport.get_session(session_id)
        if current.status.is_terminal:
            raise PreconditionError(f"Session {session_id} is {current.status.value} and cannot be continued")

        baseline = len(current.messages)
        await self.transport.send_message(session_id, followup)
        log.info("session_continued", session_id=session_id, baseline_messages=baseline)
        return await self._poll(session_id, on_status, since=baseline)

    async def get_session(self, session_id: str) -> Session:
        """Fetch a session snapshot."""
        return await self.transport.get_session(session_id)

    async def _poll(
        self,
        session_id: str,
        on_status: StatusCallback | None = None,
        since: int | None = None,
    ) -> Session:
        started = time.monotonic()
        ticks = 0

        while True:
            session = await self.transport.get_session(session_id)
            ticks += 1
            log.debug("poll_tick", session_id=session_id, tick=ticks, status=session.status.value)

            if on_status is not None:
                on_status(session.status)

            if self._should_stop(session, since):
                log.info(
                    "session_settled",
                    session_id=session_id,
                    status=session.status.value,
                    ticks=ticks,
                    elapsed_seconds=round(time.monotonic() - started, 2),
                )
                return session

            remaining = self.poll_timeout - (time.monotonic() - started)
            if remaining <= 0:
                log.warning("poll_timeout", session_id=session_id, ticks=ticks, timeout=self.poll_timeout)
                raise PollTimeoutError(
                    "Session did not settle before timeout",
                    timeout_seconds=self.poll_timeout,
                    session_id=session_id,
                )

            await asyncio.sleep(min(self.poll_interval, remaining))

    @staticmethod
    def _should_stop(session: Session, since: int | None) -> bool:
        if session.status.is_terminal:
            return True
        if session.status == SessionStatus.BLOCKED:
            return since is None or session.last_assistant_message(since) is not None
        return False

    def resolve_result(
        self,
        session: Session,
        model: type[ModelT],
        fallback: Callable[[], ModelT],
        stage: StageName,
    ) -> StageResult[ModelT]:
        """Turn a settled session into a stage result.

        Args:
            session: Session at its stop status
            model: Payload model used to validate the agent's answer
            fallback: Produces the local estimate when both remote tiers fail
            stage: Stage the result belongs to

        Returns:
            The payload with provenance; ``used_fallback`` is True only when
            the payload came from ``fallback``.
        """
        provenance = {
            "session_id": session.session_id,
            "session_url": session.url,
            "session_status": session.status,
        }

        try:
            payload = self._from_structured_output(session, model)
            log.info("result_resolved", stage=stage.value, source="structured_output", session_id=session.session_id)
            return StageResult(stage=stage, result=payload, used_fallback=False, **provenance)
        except ParseError as e:
            log.debug("structured_output_unusable", stage=stage.value, reason=e.message, session_id=session.session_id)

        try:
            payload = self._from_last_message(session, model)
            log.info("result_resolved", stage=stage.value, source="message", session_id=session.session_id)
            return StageResult(stage=stage, result=payload, used_fallback=False, **provenance)
        except ParseError as e:
            log.warning("stage_fallback", stage=stage.value, reason=e.message, session_id=session.session_id)

        return StageResult(stage=stage, result=fallback(), used_fallback=True, **provenance)

    @staticmethod
    def _from_structured_output(session: Session, model: type[ModelT]) -> ModelT:
        raw = session.structured_output
        if raw is None or raw == {} or raw == "":
            raise ParseError("Session has no structured output")
        data = parse_json_object(raw) if isinstance(raw, str) else raw
        return _validate(model, data)

    @staticmethod
    def _from_last_message(session: Session, model: type[ModelT]) -> ModelT:
        message = session.last_assistant_message()
        if message is None:
            raise ParseError("Session has no assistant message")
        return _validate(model, parse_json_object(message.text))


def _validate(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Payload does not match {model.__name__}: {e.error_count()} error(s)") from e