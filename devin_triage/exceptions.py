"""Custom exception hierarchy for devin-triage.

Exception Hierarchy:
    DevinTriageError (base)
    ├── ConfigurationError
    ├── TransportError
    ├── PollTimeoutError
    ├── ParseError
    └── PreconditionError

Scope and plan stages absorb ``TransportError``, ``PollTimeoutError`` and
``ParseError`` into the heuristic fallback. Execute surfaces
``PreconditionError`` and ``TransportError`` to its caller.

Example Usage:
    >>> from devin_triage.exceptions import ConfigurationError
    >>> try:
    ...     load_config(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Config file not found: {path}") from e
"""


class DevinTriageError(Exception):
    """Base exception for all devin-triage errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(DevinTriageError):
    """Configuration-related errors.

    Examples:
        - Configuration file not found
        - Invalid YAML syntax
        - Invalid configuration values
    """

    pass


class TransportError(DevinTriageError):
    """Communication with the remote agent service failed.

    Covers connection failures, authentication rejections and non-2xx
    responses. Not retried within a single call; callers may re-run the
    whole stage.

    Attributes:
        status_code: HTTP status code (if a response was received)
        response_text: Response body text (if a response was received)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response_text: Response body text (if applicable)
        """
        self.status_code = status_code
        self.response_text = response_text

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        # Preserve original message (super sets self.message to full_message)
        self.message = message


class PollTimeoutError(DevinTriageError):
    """A session did not reach a stop status within the poll ceiling.

    Attributes:
        timeout_seconds: The ceiling that was exceeded
        session_id: Session that was being polled
    """

    def __init__(
        self,
        message: str,
        timeout_seconds: float | None = None,
        session_id: str | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.session_id = session_id

        full_message = message
        if timeout_seconds and "timeout" not in message.lower():
            full_message = f"{message} (timeout: {timeout_seconds}s)"
        if session_id:
            full_message = f"{full_message} (session: {session_id})"

        super().__init__(full_message)
        self.message = message


class ParseError(DevinTriageError):
    """An agent payload could not be parsed or validated.

    Raised inside result resolution only; it never reaches the callers of
    the workflow stages.
    """

    pass


class PreconditionError(DevinTriageError):
    """An operation was attempted without what it needs to run.

    Raised by execute when no Devin API key is configured, before any
    network call is made.
    """

    pass
