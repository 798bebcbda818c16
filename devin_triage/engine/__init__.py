"""Session orchestration engine.

Key Components:
    - SessionOrchestrator: Create, poll and interpret remote agent sessions
    - WorkflowCoordinator: Sequence the scope, plan and execute stages
    - heuristics: Deterministic local estimates used as the fallback tier
    - extraction: Greedy JSON span extraction from agent messages

Example:
    >>> from devin_triage.engine import SessionOrchestrator, WorkflowCoordinator
    >>> coordinator = WorkflowCoordinator(SessionOrchestrator(transport))
    >>> scope = await coordinator.scope(ticket)
"""

from devin_triage.engine.orchestrator import SessionOrchestrator
from devin_triage.engine.workflow import WorkflowCoordinator

__all__ = [
    "SessionOrchestrator",
    "WorkflowCoordinator",
]
