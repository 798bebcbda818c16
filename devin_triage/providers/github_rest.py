"""GitHub ticket source implementation using PyGithub."""

import asyncio
from collections.abc import Callable
from itertools import islice
from typing import Any, TypeVar

import structlog
from github import Auth, Github, GithubException  # type: ignore[import-not-found]
from github.Issue import Issue as GHIssue  # type: ignore[import-not-found]
from github.IssueComment import IssueComment as GHComment  # type: ignore[import-not-found]
from github.Repository import Repository as GHRepository  # type: ignore[import-not-found]

from devin_triage.models.domain import Ticket
from devin_triage.providers.base import TicketSource

log = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a blocking PyGithub call in a worker thread."""
    return await asyncio.to_thread(func)


class GitHubTicketSource(TicketSource):
    """Ticket source backed by the GitHub issues API."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = "https://api.github.com",
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """Initialize GitHub ticket source.

        Args:
            token: GitHub personal access token or App token
            owner: Repository owner (user or organization)
            repo: Repository name
            base_url: GitHub API base URL (for GitHub Enterprise)
            page_size: Maximum number of issues returned by ``list_issues``
        """
        self.token = token.strip() if token else token
        self.owner = owner
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self._client: Github | None = None
        self._repo: GHRepository | None = None

    async def connect(self) -> None:
        """Initialize the GitHub client and resolve the repository."""

        def _connect() -> tuple[Github, GHRepository]:
            client = Github(auth=Auth.Token(self.token), base_url=self.base_url, per_page=self.page_size)
            repo = client.get_repo(f"{self.owner}/{self.repo}")
            return client, repo

        self._client, self._repo = await _run_sync(_connect)
        log.info("github_connected", base_url=self.base_url, owner=self.owner, repo=self.repo)

    async def disconnect(self) -> None:
        """Close the GitHub client."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repo = None

    async def _repository(self) -> GHRepository:
        if self._repo is None:
            await self.connect()
        assert self._repo is not None
        return self._repo

    async def list_issues(
        self,
        state: str = "open",
        labels: list[str] | None = None,
        sort: str = "created",
    ) -> list[Ticket]:
        """Retrieve up to ``page_size`` issues, newest first."""
        log.info("list_issues", state=state, labels=labels, sort=sort)

        gh_state = state if state in ("open", "closed", "all") else "open"
        repo = await self._repository()

        try:
            gh_issues = await _run_sync(
                lambda: list(
                    islice(
                        repo.get_issues(state=gh_state, labels=labels or [], sort=sort, direction="desc"),
                        self.page_size,
                    )
                )
            )
        except GithubException as e:
            log.error("github_list_issues_failed", error=str(e))
            raise

        # The issues endpoint also returns pull requests
        return [self._convert_issue(gh_issue) for gh_issue in gh_issues if gh_issue.pull_request is None]

    async def get_issue(self, issue_number: int) -> Ticket:
        """Get a single issue by number."""
        log.info("get_issue", number=issue_number)
        repo = await self._repository()

        try:
            gh_issue = await _run_sync(lambda: repo.get_issue(issue_number))
        except GithubException as e:
            log.error("github_get_issue_failed", number=issue_number, error=str(e))
            raise

        return self._convert_issue(gh_issue)

    async def get_comments(self, issue_number: int) -> list[dict[str, Any]]:
        """Retrieve all comments for an issue."""
        log.info("get_comments", number=issue_number)
        repo = await self._repository()

        try:
            gh_comments = await _run_sync(lambda: list(repo.get_issue(issue_number).get_comments()))
        except GithubException as e:
            log.error("github_get_comments_failed", number=issue_number, error=str(e))
            raise

        return [self._convert_comment(c) for c in gh_comments]

    async def add_comment(self, issue_number: int, text: str) -> None:
        """Add a comment to an issue."""
        log.info("add_comment", number=issue_number)
        repo = await self._repository()

        try:
            await _run_sync(lambda: repo.get_issue(issue_number).create_comment(text))
        except GithubException as e:
            log.error("github_add_comment_failed", number=issue_number, error=str(e))
            raise

    async def update_issue(self, issue_number: int, **patch: Any) -> Ticket:
        """Update issue fields (title, body, labels, state, assignees)."""
        log.info("update_issue", number=issue_number, fields=sorted(patch))
        repo = await self._repository()

        def _update() -> GHIssue:
            gh_issue = repo.get_issue(issue_number)
            if patch:
                gh_issue.edit(**patch)
            return repo.get_issue(issue_number)

        try:
            gh_issue = await _run_sync(_update)
        except GithubException as e:
            log.error("github_update_issue_failed", number=issue_number, error=str(e))
            raise

        return self._convert_issue(gh_issue)

    def _convert_issue(self, gh_issue: GHIssue) -> Ticket:
        """Convert a GitHub issue to a Ticket."""
        return Ticket(
            number=gh_issue.number,
            title=gh_issue.title,
            body=gh_issue.body or "",
            labels=frozenset(label.name for label in gh_issue.labels),
            owner=self.owner,
            repo_name=self.repo,
            state=gh_issue.state,
            assignees=tuple(assignee.login for assignee in gh_issue.assignees),
            author=gh_issue.user.login if gh_issue.user else "unknown",
            url=gh_issue.html_url,
            created_at=gh_issue.created_at,
            updated_at=gh_issue.updated_at,
        )

    @staticmethod
    def _convert_comment(gh_comment: GHComment) -> dict[str, Any]:
        return {
            "id": gh_comment.id,
            "user": gh_comment.user.login if gh_comment.user else "unknown",
            "body": gh_comment.body,
            "created_at": gh_comment.created_at,
            "updated_at": gh_comment.updated_at,
        }
