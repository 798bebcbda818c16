"""
Ticket lifecycle workflow: scope, plan, execute.

The coordinator renders the prompt for each stage, hands it to the
session orchestrator, and decides what happens when the remote side
cannot deliver.

Stage Policies:
    scope    Remote analysis, heuristic estimate on any transport error or
             poll timeout. Never raises for remote failures.
    plan     Continues the scope session when it is still waiting for
             input, otherwise opens a fresh session with the full ticket
             and scope context. Same fallback policy as scope.
    execute  Fire-and-forget remote session. No local equivalent exists,
             so a missing credential or transport failure is raised.

Fallback-Only Mode:
    Built without an orchestrator (no Devin API key configured), scope and
    plan return heuristic results without touching the network and execute
    raises ``PreconditionError``.

Example:
    >>> coordinator = WorkflowCoordinator(SessionOrchestrator(transport))
    >>> scope = await coordinator.scope(ticket)
    >>> plan = await coordinator.plan(ticket, scope)
    >>> handle = await coordinator.execute(ticket, plan)
    >>> print(handle.session_url)
"""

import json

import structlog

from devin_triage.engine import heuristics
from devin_triage.engine.orchestrator import SessionOrchestrator, StatusCallback
from devin_triage.exceptions import PollTimeoutError, PreconditionError, TransportError
from devin_triage.models.domain import ExecutionHandle, Session, StageName, StageResult, Ticket
from devin_triage.models.results import PlanResult, ScopeResult, output_schema

log = structlog.get_logger(__name__)

SESSION_TAG = "devin-triage"


class WorkflowCoordinator:
    """Sequence the scope, plan and execute stages for tickets.

    Attributes:
        orchestrator: Session orchestrator, or None for fallback-only mode.
    """

    def __init__(self, orchestrator: SessionOrchestrator | None = None) -> None:
        self.orchestrator = orchestrator

    @property
    def remote_enabled(self) -> bool:
        """Whether stages can reach the remote agent."""
        return self.orchestrator is not None

    async def close(self) -> None:
        """Release the transport held by the orchestrator."""
        if self.orchestrator is not None:
            await self.orchestrator.transport.close()

    async def scope(
        self,
        ticket: Ticket,
        on_status: StatusCallback | None = None,
    ) -> StageResult[ScopeResult]:
        """Assess the scope of work for a ticket.

        Args:
            ticket: Ticket to analyze
            on_status: Called with the session status on every poll tick

        Returns:
            Remote assessment, or the heuristic estimate with
            ``used_fallback=True``.
        """
        log.info("scope_stage_start", issue=ticket.number, repository=ticket.repository)

        def fallback() -> ScopeResult:
            return heuristics.score(ticket)

        if self.orchestrator is None:
            log.info("scope_heuristic_only", issue=ticket.number)
            return StageResult(stage=StageName.SCOPE, result=fallback(), used_fallback=True)

        try:
            session = await self.orchestrator.create_and_drive(
                self._render_scope_prompt(ticket),
                schema=output_schema(ScopeResult),
                tags=self._tags(ticket, StageName.SCOPE),
                on_status=on_status,
            )
        except (TransportError, PollTimeoutError) as e:
            log.warning("scope_remote_failed", issue=ticket.number, error=str(e))
            return StageResult(stage=StageName.SCOPE, result=fallback(), used_fallback=True)

        result = self.orchestrator.resolve_result(session, ScopeResult, fallback, StageName.SCOPE)
        log.info(
            "scope_stage_complete",
            issue=ticket.number,
            complexity=result.result.complexity,
            used_fallback=result.used_fallback,
        )
        return result

    async def plan(
        self,
        ticket: Ticket,
        scope: StageResult[ScopeResult],
        on_status: StatusCallback | None = None,
    ) -> StageResult[PlanResult]:
        """Generate an action plan from a scope result.

        Args:
            ticket: Ticket being planned
            scope: Result of the scope stage for the same ticket
            on_status: Called with the session status on every poll tick

        Returns:
            Remote plan, or the generic plan with ``used_fallback=True``.
        """
        log.info("plan_stage_start", issue=ticket.number, continuable=scope.is_continuable)

        def fallback() -> PlanResult:
            return heuristics.plan_fallback(ticket, scope.result)

        if self.orchestrator is None:
            log.info("plan_heuristic_only", issue=ticket.number)
            return StageResult(stage=StageName.PLAN, result=fallback(), used_fallback=True)

        session: Session | None = None
        try:
            if scope.is_continuable:
                assert scope.session_id is not None
                try:
                    session = await self.orchestrator.continue_session(
                        scope.session_id,
                        self._render_plan_followup(),
                        on_status=on_status,
                    )
                except (TransportError, PreconditionError) as e:
                    log.warning(
                        "plan_continuation_failed",
                        issue=ticket.number,
                        session_id=scope.session_id,
                        error=str(e),
                    )

            if session is None:
                session = await self.orchestrator.create_and_drive(
                    self._render_plan_prompt(ticket, scope.result),
                    schema=output_schema(PlanResult),
                    tags=self._tags(ticket, StageName.PLAN),
                    on_status=on_status,
                )
        except (TransportError, PollTimeoutError) as e:
            log.warning("plan_remote_failed", issue=ticket.number, error=str(e))
            return StageResult(stage=StageName.PLAN, result=fallback(), used_fallback=True)

        result = self.orchestrator.resolve_result(session, PlanResult, fallback, StageName.PLAN)
        log.info(
            "plan_stage_complete",
            issue=ticket.number,
            steps=len(result.result.steps),
            used_fallback=result.used_fallback,
        )
        return result

    async def execute(self, ticket: Ticket, plan: StageResult[PlanResult]) -> ExecutionHandle:
        """Start a remote session that carries out the plan.

        Returns immediately after the session is created.

        Raises:
            PreconditionError: If no Devin API key is configured
            TransportError: If the session cannot be created
        """
        if self.orchestrator is None:
            raise PreconditionError("DEVIN_API_KEY is not configured; execution requires a Devin session")

        log.info("execute_stage_start", issue=ticket.number, steps=len(plan.result.steps))
        handle = await self.orchestrator.start(
            self._render_execute_prompt(ticket, plan.result),
            tags=self._tags(ticket, StageName.EXECUTE),
        )
        log.info("execute_stage_started", issue=ticket.number, session_id=handle.session_id, url=handle.url)
        return ExecutionHandle(session_id=handle.session_id, session_url=handle.url)

    @staticmethod
    def _tags(ticket: Ticket, stage: StageName) -> list[str]:
        return [SESSION_TAG, stage.value, f"issue-{ticket.number}"]

    @staticmethod
    def _render_scope_prompt(ticket: Ticket) -> str:
        labels = ", ".join(sorted(ticket.labels)) if ticket.labels else "None"
        return f"""Analyze this GitHub issue in {ticket.repository} and provide:
1. A detailed scope of work required
2. Estimated complexity (1-10)
3. Confidence score for successful completion (1-100)
4. Key requirements and deliverables
5. Potential risks or blockers
6. Estimated time to complete

Do not change any code. This is an analysis task only.

**Issue #{ticket.number}**: {ticket.title}

**Labels**: {labels}

**Body**:
{ticket.body or "No description provided"}
"""

    @staticmethod
    def _render_plan_followup() -> str:
        schema = json.dumps(output_schema(PlanResult), indent=2)
        return f"""Based on your analysis, create a detailed action plan to complete this issue.

Provide:
1. Step-by-step implementation plan
2. Code files to create and to modify
3. Testing strategy
4. Dependencies required
5. Success criteria

Do not change any code yet. Reply with a JSON object that conforms to this schema:
```json
{schema}
```
"""

    @staticmethod
    def _render_plan_prompt(ticket: Ticket, scope: ScopeResult) -> str:
        requirements = "\n".join(f"- {item}" for item in scope.requirements) or "- None listed"
        risks = "\n".join(f"- {item}" for item in scope.risks) or "- None listed"
        return f"""Create a detailed action plan to complete this GitHub issue in {ticket.repository}.

**Issue #{ticket.number}**: {ticket.title}

**Body**:
{ticket.body or "No description provided"}

**Scope**: {scope.scope}
**Complexity**: {scope.complexity}/10
**Estimated Time**: {scope.estimated_time}

**Requirements**:
{requirements}

**Risks**:
{risks}

Provide:
1. Step-by-step implementation plan
2. Code files to create and to modify
3. Testing strategy
4. Dependencies required
5. Success criteria

Do not change any code. This is a planning task only.
"""

    @staticmethod
    def _render_execute_prompt(ticket: Ticket, plan: PlanResult) -> str:
        steps = "\n".join(f"- {step}" for step in plan.steps)
        criteria = "\n".join(f"- {item}" for item in plan.success_criteria) or "- Issue requirements are met"
        files = [f"- create `{path}`" for path in plan.files_to_create]
        files += [f"- modify `{path}`" for path in plan.files_to_modify]
        file_list = "\n".join(files) or "- Determine from the codebase"
        return f"""Complete GitHub issue #{ticket.number} in {ticket.repository} by following this action plan.

**Issue #{ticket.number}**: {ticket.title}

**Body**:
{ticket.body or "No description provided"}

**Steps**:
{steps}

**Files**:
{file_list}

**Testing Strategy**: {plan.testing_strategy or "Add or update tests where applicable"}

**Success Criteria**:
{criteria}

When finished, open a pull request that references #{ticket.number}.
"""
