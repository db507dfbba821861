"""Custom exception hierarchy for the tpi client."""


class TpiError(Exception):
    """Base exception for all tpi errors."""


class ConfigurationError(TpiError):
    """Raised when configuration is missing or invalid."""


class ProgrammingError(TpiError):
    """Raised when the request wrapper is misused. Never retried."""


class RequestNotBuiltError(ProgrammingError):
    """Raised when a request is used before a method was selected."""


class InvalidTargetError(ProgrammingError):
    """Raised when a request target is not an absolute URL."""


class UnreplayableBodyError(ProgrammingError):
    """Raised when a one-shot request body would have to be sent twice."""


class AuthError(TpiError):
    """Raised when no bearer token could be obtained."""


class NoCredentialsError(AuthError):
    """Raised when no cached token or credentials are available."""


class CredentialsRejectedError(AuthError):
    """Raised when the controller refuses the supplied credentials."""


class UnexpectedAuthResponseError(AuthError):
    """Raised when the authentication endpoint answers something unexpected.

    Attributes:
        status_code: HTTP status code of the response (optional)
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(TpiError):
    """Raised when the HTTP exchange itself failed."""


class TransportTimeoutError(TransportError):
    """Raised when the controller did not answer in time."""


class TransportConnectionError(TransportError):
    """Raised when unable to connect to the controller (including TLS failures)."""


class ApiError(TpiError):
    """Raised when the controller returns a non-success status for a command.

    Attributes:
        message: Error message
        status_code: HTTP status code from the controller
        body: Raw response text
    """

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
