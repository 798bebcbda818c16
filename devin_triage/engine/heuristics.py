"""Deterministic local estimates used when the remote agent cannot answer.

Both functions depend only on the ticket's shape: no I/O, no clock, no
randomness. They must never raise.
"""

from devin_triage.models.domain import Ticket
from devin_triage.models.results import PlanResult, ScopeResult

BASE_COMPLEXITY = 3
MIN_CONFIDENCE = 20
LONG_BODY_THRESHOLD = 1000
MANY_LABELS_THRESHOLD = 3

# Label -> complexity adjustment
LABEL_WEIGHTS = {
    "bug": -1,
    "enhancement": 1,
    "complex": 3,
}


def score(ticket: Ticket) -> ScopeResult:
    """Estimate scope, complexity and confidence from ticket metadata.

    Example:
        >>> result = score(ticket)  # 1200-char body, labels bug + complex
        >>> result.complexity, result.confidence_score, result.estimated_time
        (7, 44, '14 hours')
    """
    complexity = BASE_COMPLEXITY

    if len(ticket.body or "") > LONG_BODY_THRESHOLD:
        complexity += 2
    if len(ticket.labels) > MANY_LABELS_THRESHOLD:
        complexity += 1
    for label, weight in LABEL_WEIGHTS.items():
        if label in ticket.labels:
            complexity += weight

    complexity = min(10, max(1, complexity))
    confidence = max(MIN_CONFIDENCE, 100 - complexity * 8)

    return ScopeResult(
        scope=f"Basic analysis of issue #{ticket.number}: {ticket.title}",
        complexity=complexity,
        confidence_score=confidence,
        requirements=[
            "Review issue description",
            "Implement required changes",
            "Test the solution",
            "Update documentation if needed",
        ],
        risks=[
            "Limited context from issue description",
            "Potential unknown dependencies",
        ],
        estimated_time=f"{complexity * 2} hours",
    )


def plan_fallback(ticket: Ticket, scope: ScopeResult) -> PlanResult:
    """Return the generic six-step plan."""
    return PlanResult(
        steps=[
            "1. Analyze current codebase structure",
            "2. Implement the required changes",
            "3. Test the implementation",
            "4. Create or update tests",
            "5. Update documentation",
            "6. Submit pull request",
        ],
        files_to_create=[],
        files_to_modify=[],
        testing_strategy="Manual testing and automated tests where applicable",
        dependencies=[],
        success_criteria=[
            "Issue requirements are met",
            "Code follows project standards",
            "Tests pass",
            "Documentation is updated",
        ],
    )
