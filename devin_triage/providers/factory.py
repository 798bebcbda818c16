"""Factories that build collaborators and the workflow from settings."""

import structlog

from devin_triage.config.settings import TriageSettings
from devin_triage.engine.orchestrator import SessionOrchestrator
from devin_triage.engine.workflow import WorkflowCoordinator
from devin_triage.exceptions import ConfigurationError
from devin_triage.providers.base import SessionTransport
from devin_triage.providers.devin_rest import DevinSessionTransport
from devin_triage.providers.github_rest import GitHubTicketSource

log = structlog.get_logger(__name__)


def create_session_transport(settings: TriageSettings) -> SessionTransport | None:
    """Create the Devin transport, or None when no API key is configured.

    Example:
        >>> settings = TriageSettings.load("devin-triage.yaml")
        >>> transport = create_session_transport(settings)
    """
    devin = settings.devin
    if devin.api_key is None:
        log.warning("devin_api_key_missing", message="Scope and plan will use heuristics only")
        return None

    log.info("creating_devin_transport", api_endpoint=devin.api_endpoint)
    return DevinSessionTransport(
        api_key=devin.api_key.get_secret_value(),
        api_endpoint=devin.api_endpoint,
        timeout=devin.request_timeout,
        max_connections=devin.max_connections,
    )


def create_coordinator(
    settings: TriageSettings,
    transport: SessionTransport | None = None,
) -> WorkflowCoordinator:
    """Create a workflow coordinator.

    Args:
        settings: Loaded settings
        transport: Transport to use instead of the one built from settings

    Returns:
        A coordinator; in fallback-only mode when no transport is available.
    """
    transport = transport or create_session_transport(settings)
    if transport is None:
        return WorkflowCoordinator(None)
    return WorkflowCoordinator(SessionOrchestrator(transport))


def create_ticket_source(settings: TriageSettings) -> GitHubTicketSource:
    """Create the GitHub ticket source.

    Raises:
        ConfigurationError: If the token, owner or repository is missing
    """
    github = settings.github
    if not github.is_complete:
        raise ConfigurationError("GITHUB_TOKEN, GITHUB_OWNER and GITHUB_REPO are required")

    assert github.token is not None and github.owner is not None and github.repo is not None
    log.info("creating_github_ticket_source", owner=github.owner, repo=github.repo)
    return GitHubTicketSource(
        token=github.token.get_secret_value(),
        owner=github.owner,
        repo=github.repo,
        base_url=github.base_url,
    )
