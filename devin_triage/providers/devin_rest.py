"""Devin session transport over the Devin REST API (v1).

Endpoints used:
    POST /sessions                    create a session
    GET  /session/{session_id}        fetch status, structured output, messages
    POST /session/{session_id}/message send a follow-up message

Devin reports a richer status set than the core needs; ``STATUS_MAP``
folds it into ``SessionStatus``. Unknown statuses read as running so the
poll loop keeps waiting, bounded by its ceiling.
"""

import json
from typing import Any

import httpx
import structlog

from devin_triage.exceptions import TransportError
from devin_triage.models.domain import Message, MessageRole, Session, SessionHandle, SessionStatus
from devin_triage.providers.base import SessionTransport
from devin_triage.utils.connection_pool import HTTPConnectionPool

log = structlog.get_logger(__name__)

DEFAULT_API_ENDPOINT = "https://api.devin.ai/v1"
APP_SESSIONS_URL = "https://app.devin.ai/sessions"

STATUS_MAP = {
    "running": SessionStatus.RUNNING,
    "working": SessionStatus.RUNNING,
    "resumed": SessionStatus.RUNNING,
    "blocked": SessionStatus.BLOCKED,
    "finished": SessionStatus.FINISHED,
    "stopped": SessionStatus.FINISHED,
    "expired": SessionStatus.EXPIRED,
    "suspend_requested": SessionStatus.EXPIRED,
    "suspend_requested_frontend": SessionStatus.EXPIRED,
    "suspended": SessionStatus.EXPIRED,
}

ROLE_MAP = {
    "devin_message": MessageRole.ASSISTANT,
    "user_message": MessageRole.USER,
    "initial_user_message": MessageRole.USER,
}


def render_schema_instructions(output_schema: dict[str, Any]) -> str:
    """Render the output-schema request appended to a session prompt."""
    return (
        "\n\nWhen you are done, record your answer as structured output that "
        "conforms to the JSON schema below, and repeat the same JSON object "
        "as your final message.\n"
        f"```json\n{json.dumps(output_schema, indent=2)}\n```"
    )


def session_url(session_id: str) -> str:
    """Return the web app URL of a session."""
    return f"{APP_SESSIONS_URL}/{session_id.removeprefix('devin-')}"

class DevinSessionTransport(SessionTransport):
    """Session transport for the Devin API."""

    def __init__(
        self,
        api_key: str,
        api_endpoint: str = DEFAULT_API_ENDPOINT,
        timeout: float = 30.0,
        max_connections: int = 10,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the transport.

        Args:
            api_key: Devin API key, sent as a bearer token
            api_endpoint: API base URL
            timeout: Per-request timeout in seconds
            max_connections: Connection pool size
            http_transport: Optional httpx transport (used by tests)
        """
        self.api_endpoint = api_endpoint.rstrip("/")
        self.pool = HTTPConnectionPool(
            base_url=self.api_endpoint,
            max_connections=max_connections,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=http_transport,
        )

    async def create_session(
        self,
        prompt: str,
        tags: list[str] | None = None,
        output_schema: dict[str, Any] | None = None,
    ) -> SessionHandle:
        """Start a Devin session."""
        if output_schema is not None:
            prompt = prompt + render_schema_instructions(output_schema)

        payload: dict[str, Any] = {"prompt": prompt, "idempotent": False}
        if tags:
            payload["tags"] = list(tags)

        data = await self._request("POST", "/sessions", json=payload)

        session_id = data.get("session_id")
        if not session_id:
            raise TransportError("Session create response did not include a session_id")

        log.info("devin_session_created", session_id=session_id, tags=tags)
        return SessionHandle(session_id=session_id, url=data.get("url") or session_url(session_id))

    async def get_session(self, session_id: str) -> Session:
        """Fetch a Devin session."""
        data = await self._request("GET", f"/session/{session_id}")
        return self._convert_session(session_id, data)

    async def send_message(self, session_id: str, text: str) -> Session:
        """Send a message to a Devin session and return its refreshed state."""
        await self._request("POST", f"/session/{session_id}/message", json={"message": text})
        log.info("devin_message_sent", session_id=session_id, length=len(text))
        return await self.get_session(session_id)

    async def close(self) -> None:
        await self.pool.close()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and decode a JSON object body.

        Raises:
            TransportError: On connection failure, non-2xx status, or a body
                that is not a JSON object
        """
        try:
            response = await self.pool.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            log.error(
                "devin_request_failed",
                method=method,
                path=path,
                status_code=e.response.status_code,
            )
            raise TransportError(
                f"Devin API {method} {path} failed",
                status_code=e.response.status_code,
                response_text=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            log.error("devin_request_error", method=method, path=path, error=str(e))
            raise TransportError(f"Devin API {method} {path} failed: {e}") from e

        if not response.content:
            return {}

        try:
            data = response.json()
        except (ValueError, RecursionError) as e:
            raise TransportError(
                f"Devin API {method} {path} returned invalid JSON",
                status_code=response.status_code,
                response_text=response.text,
            ) from e

        if not isinstance(data, dict):
            raise TransportError(f"Devin API {method} {path} returned {type(data).__name__}, expected object")
        return data

    @staticmethod
    def _convert_session(session_id: str, data: dict[str, Any]) -> Session:
        """Convert a Devin session payload to a Session."""
        raw_status = str(data.get("status_enum") or data.get("status") or "").lower()
        status = STATUS_MAP.get(raw_status, SessionStatus.RUNNING)

        messages = []
        for item in data.get("messages") or []:
            if not isinstance(item, dict):
                continue
            role = ROLE_MAP.get(item.get("type", ""), MessageRole.TOOL)
            messages.append(Message(role=role, text=str(item.get("message") or "")))

        return Session(
            session_id=data.get("session_id") or session_id,
            url=data.get("url") or session_url(session_id),
            status=status,
            structured_output=data.get("structured_output"),
            messages=messages,
        )
