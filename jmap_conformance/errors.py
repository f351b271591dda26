"""Error taxonomy shared by the harness components."""


class ConfigurationError(Exception):
    """Raised when the harness configuration or session resource is unusable."""


class PreconditionError(Exception):
    """Raised when the account is not empty and destructive cleanup is not allowed."""


class AssertionFailure(Exception):
    """Raised by context assertions; scoped to the current check."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportError(Exception):
    """Raised on HTTP or network level failures talking to the server."""

    def __init__(self, message: str, status: int = 0, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class MethodError(Exception):
    """Raised when a JMAP method call answers with an ``error`` response."""

    def __init__(self, type: str, description: str | None = None) -> None:
        suffix = f" - {description}" if description else ""
        super().__init__(f"JMAP method error: {type}{suffix}")
        self.type = type
        self.description = description
