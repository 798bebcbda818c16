"""CLI entry point for devin-triage."""

import asyncio
import sys
from collections.abc import Awaitable
from typing import Any

import click
import structlog

from devin_triage.config.settings import TriageSettings
from devin_triage.engine.orchestrator import StatusCallback
from devin_triage.engine.reporting import format_execution_comment, format_plan_comment, format_scope_comment
from devin_triage.exceptions import ConfigurationError, DevinTriageError, PreconditionError
from devin_triage.models.domain import SessionStatus, StageResult
from devin_triage.models.results import PlanResult, ScopeResult
from devin_triage.providers.factory import create_coordinator, create_ticket_source
from devin_triage.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option("--config", default="devin-triage.yaml", help="Path to configuration file")
@click.option("--log-level", default=None, help="Logging level (overrides configuration)")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str | None) -> None:
    """devin-triage: scope, plan and execute GitHub issues with Devin."""
    try:
        settings = TriageSettings.load(config)
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    configure_logging(log_level or settings.log_level)
    ctx.obj = {"settings": settings}


def _run(coro: Awaitable[Any], command: str) -> Any:
    """Run a command coroutine with uniform error reporting."""
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except DevinTriageError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug(f"{command}_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error(f"{command}_unexpected", exc_info=True)
        sys.exit(1)


def _status_printer() -> StatusCallback:
    """Echo session status changes, skipping repeats."""
    last: list[SessionStatus] = []

    def on_status(status: SessionStatus) -> None:
        if not last or last[-1] != status:
            click.echo(f"   session status: {status.value}", err=True)
            last.append(status)

    return on_status


def _echo_scope(result: StageResult[ScopeResult]) -> None:
    scope = result.result
    click.echo("\n📊 Analysis Results:")
    click.echo(f"Scope: {scope.scope}")
    click.echo(f"Complexity: {scope.complexity}/10")
    click.echo(f"Confidence Score: {scope.confidence_score}%")
    click.echo(f"Estimated Time: {scope.estimated_time}")
    click.echo("\n📋 Requirements:")
    for i, requirement in enumerate(scope.requirements, 1):
        click.echo(f"  {i}. {requirement}")
    if scope.risks:
        click.echo("\n⚠️  Risks:")
        for i, risk in enumerate(scope.risks, 1):
            click.echo(f"  {i}. {risk}")
    _echo_provenance(result)


def _echo_plan(result: StageResult[PlanResult]) -> None:
    plan = result.result
    click.echo("\n📝 Action Plan:")
    for step in plan.steps:
        click.echo(f"  {step}")
    if plan.files_to_create:
        click.echo(f"\nFiles to create: {', '.join(plan.files_to_create)}")
    if plan.files_to_modify:
        click.echo(f"Files to modify: {', '.join(plan.files_to_modify)}")
    click.echo(f"\nTesting Strategy: {plan.testing_strategy}")
    _echo_provenance(result)


def _echo_provenance(result: StageResult) -> None:
    if result.used_fallback:
        click.echo(click.style("\n(heuristic estimate: Devin unavailable or unparsable)", fg="yellow"))
    elif result.session_url:
        click.echo(f"\nDevin session: {result.session_url}")


@cli.command("list")
@click.option("--state", type=click.Choice(["open", "closed", "all"]), default="open", help="Issue state")
@click.option("--labels", default=None, help="Comma-separated list of labels")
@click.option("--sort", type=click.Choice(["created", "updated", "comments"]), default="created", help="Sort by")
@click.pass_context
def list_issues(ctx: click.Context, state: str, labels: str | None, sort: str) -> None:
    """List GitHub issues."""
    _run(_list_issues(ctx.obj["settings"], state, labels, sort), "list")


async def _list_issues(settings: TriageSettings, state: str, labels: str | None, sort: str) -> None:
    source = create_ticket_source(settings)
    label_filter = [label.strip() for label in labels.split(",") if label.strip()] if labels else None

    try:
        tickets = await source.list_issues(state=state, labels=label_filter, sort=sort)
    finally:
        await source.disconnect()

    if not tickets:
        click.echo("No issues found.")
        return

    click.echo(f"\nFound {len(tickets)} issues:\n")
    for ticket in tickets:
        marker = click.style("●", fg="green" if ticket.state == "open" else "red")
        label_text = f" [{', '.join(sorted(ticket.labels))}]" if ticket.labels else ""
        assignees = f" 👤 {', '.join(ticket.assignees)}" if ticket.assignees else ""
        created = ticket.created_at.date().isoformat() if ticket.created_at else ""
        click.echo(f"{marker} #{ticket.number} {ticket.title}{label_text}{assignees}")
        click.echo(f"   {created} {ticket.url}\n")


@cli.command()
@click.argument("issue_number", type=int)
@click.option("--comment", is_flag=True, help="Post the analysis as an issue comment")
@click.pass_context
def analyze(ctx: click.Context, issue_number: int, comment: bool) -> None:
    """Analyze (scope) a GitHub issue."""
    _run(_analyze(ctx.obj["settings"], issue_number, comment), "analyze")


async def _analyze(settings: TriageSettings, issue_number: int, comment: bool) -> None:
    source = create_ticket_source(settings)
    coordinator = create_coordinator(settings)

    try:
        ticket = await source.get_issue(issue_number)
        click.echo(f"🔍 Analyzing issue #{ticket.number}: {ticket.title}...")
        scope = await coordinator.scope(ticket, on_status=_status_printer())
        _echo_scope(scope)

        if comment:
            await source.add_comment(ticket.number, format_scope_comment(scope))
            click.echo("\n💬 Analysis posted to the issue.")
    finally:
        await source.disconnect()
        await coordinator.close()


@cli.command()
@click.argument("issue_number", type=int)
@click.option("--comment", is_flag=True, help="Post the action plan as an issue comment")
@click.pass_context
def plan(ctx: click.Context, issue_number: int, comment: bool) -> None:
    """Scope a GitHub issue and generate an action plan."""
    _run(_plan(ctx.obj["settings"], issue_number, comment), "plan")


async def _plan(settings: TriageSettings, issue_number: int, comment: bool) -> None:
    source = create_ticket_source(settings)
    coordinator = create_coordinator(settings)

    try:
        ticket = await source.get_issue(issue_number)
        click.echo(f"🔍 Analyzing issue #{ticket.number}: {ticket.title}...")
        scope = await coordinator.scope(ticket, on_status=_status_printer())
        _echo_scope(scope)

        click.echo("\n📝 Generating action plan...")
        action_plan = await coordinator.plan(ticket, scope, on_status=_status_printer())
        _echo_plan(action_plan)

        if comment:
            await source.add_comment(ticket.number, format_plan_comment(action_plan))
            click.echo("\n💬 Action plan posted to the issue.")
    finally:
        await source.disconnect()
        await coordinator.close()


@cli.command()
@click.argument("issue_number", type=int)
@click.option("--comment/--no-comment", default=True, help="Post the session link as an issue comment")
@click.pass_context
def execute(ctx: click.Context, issue_number: int, comment: bool) -> None:
    """Scope, plan and hand a GitHub issue to Devin for execution."""
    _run(_execute(ctx.obj["settings"], issue_number, comment), "execute")


async def _execute(settings: TriageSettings, issue_number: int, comment: bool) -> None:
    if not settings.devin.has_credentials:
        raise PreconditionError("DEVIN_API_KEY is required to execute an issue")

    source = create_ticket_source(settings)
    coordinator = create_coordinator(settings)

    try:
        ticket = await source.get_issue(issue_number)
        scope = await coordinator.scope(ticket, on_status=_status_printer())
        action_plan = await coordinator.plan(ticket, scope, on_status=_status_printer())
        _echo_plan(action_plan)

        click.echo(f"\n🚀 Starting Devin session for issue #{ticket.number}...")
        handle = await coordinator.execute(ticket, action_plan)
        click.echo(f"Session ID: {handle.session_id}")
        click.echo(f"Session URL: {handle.session_url}")

        if comment:
            await source.add_comment(ticket.number, format_execution_comment(handle))
    finally:
        await source.disconnect()
        await coordinator.close()


@cli.command()
@click.argument("session_id")
@click.pass_context
def session(ctx: click.Context, session_id: str) -> None:
    """Show the status of a Devin session."""
    _run(_show_session(ctx.obj["settings"], session_id), "session")


async def _show_session(settings: TriageSettings, session_id: str) -> None:
    coordinator = create_coordinator(settings)
    if coordinator.orchestrator is None:
        raise ConfigurationError("DEVIN_API_KEY is required to look up sessions")

    try:
        current = await coordinator.orchestrator.get_session(session_id)
    finally:
        await coordinator.close()

    click.echo(f"Session: {current.session_id}")
    click.echo(f"Status:  {current.status.value}")
    click.echo(f"URL:     {current.url}")
    last = current.last_assistant_message()
    if last is not None:
        click.echo(f"\nLast message:\n{last.text}")


if __name__ == "__main__":
    cli()
