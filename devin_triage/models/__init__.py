"""Domain models and agent payload schemas."""

from devin_triage.models.domain import (
    ExecutionHandle,
    Message,
    MessageRole,
    Session,
    SessionHandle,
    SessionStatus,
    StageName,
    StageResult,
    Ticket,
)
from devin_triage.models.results import PlanResult, ScopeResult

__all__ = [
    "ExecutionHandle",
    "Message",
    "MessageRole",
    "PlanResult",
    "ScopeResult",
    "Session",
    "SessionHandle",
    "SessionStatus",
    "StageName",
    "StageResult",
    "Ticket",
]
