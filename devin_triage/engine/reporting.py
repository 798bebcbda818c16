"""Markdown comment bodies for posting stage results to an issue."""

from devin_triage.models.domain import ExecutionHandle, StageResult
from devin_triage.models.results import PlanResult, ScopeResult

SIGNATURE = "◆ Posted by devin-triage"


def _provenance(result: StageResult) -> list[str]:
    if result.used_fallback:
        return [
            "",
            "⚠️ **Note**: Devin was unavailable or its answer could not be parsed. "
            "This is a heuristic estimate.",
        ]
    if result.session_url:
        return ["", f"🔗 [Devin session]({result.session_url})"]
    return []


def _bullets(items: list[str], empty: str) -> list[str]:
    if not items:
        return [f"- {empty}"]
    return [f"- {item}" for item in items]


def format_scope_comment(result: StageResult[ScopeResult]) -> str:
    """Render a scope result as an issue comment."""
    scope = result.result
    parts = [
        "🔍 **Issue Analysis**",
        "",
        f"**Scope**: {scope.scope}",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Complexity | {scope.complexity}/10 |",
        f"| Confidence | {scope.confidence_score}% |",
        f"| Estimated Time | {scope.estimated_time} |",
        "",
        "## Requirements",
        "",
        *_bullets(scope.requirements, "None listed"),
        "",
        "## Risks",
        "",
        *_bullets(scope.risks, "None identified"),
    ]
    parts.extend(_provenance(result))
    parts.extend(["", "---", "", SIGNATURE])
    return "\n".join(parts)


def format_plan_comment(result: StageResult[PlanResult]) -> str:
    """Render a plan result as an issue comment."""
    plan = result.result
    parts = ["📝 **Action Plan**", "", "## Steps", ""]
    parts.extend(f"{i}. {step}" if not step[:1].isdigit() else step for i, step in enumerate(plan.steps, 1))

    if plan.files_to_create or plan.files_to_modify:
        parts.extend(["", "## Files", ""])
        parts.extend(f"- create `{path}`" for path in plan.files_to_create)
        parts.extend(f"- modify `{path}`" for path in plan.files_to_modify)

    if plan.dependencies:
        parts.extend(["", "## Dependencies", "", *_bullets(plan.dependencies, "")])

    parts.extend(
        [
            "",
            "## Testing Strategy",
            "",
            plan.testing_strategy or "Not specified",
            "",
            "## Success Criteria",
            "",
            *_bullets(plan.success_criteria, "Not specified"),
        ]
    )
    parts.extend(_provenance(result))
    parts.extend(["", "---", "", SIGNATURE])
    return "\n".join(parts)


def format_execution_comment(handle: ExecutionHandle) -> str:
    """Render the comment posted when an execution session starts."""
    return "\n".join(
        [
            "🚀 **Devin AI Session Started**",
            "",
            f"Session ID: `{handle.session_id}`",
            f"Session URL: {handle.session_url}",
            "",
            "Devin is now working on this issue and will open a pull request when done.",
            "",
            "---",
            "",
            SIGNATURE,
        ]
    )
