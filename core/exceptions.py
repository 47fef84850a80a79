"""Custom exception hierarchy for the broker proxy."""


class ProxyError(Exception):
    """Base exception for all proxy errors."""


class ConfigurationError(ProxyError):
    """Raised when configuration is missing or invalid."""


class CredentialError(ProxyError):
    """Raised when a bearer token cannot be obtained."""


class TransportError(ProxyError):
    """Raised when a request to the broker could not complete."""


class UpstreamTimeoutError(TransportError):
    """Raised when a request to the broker times out."""


class BackendRejectionError(ProxyError):
    """Raised when the broker answers the startup check with a non-200 status.

    Attributes:
        status_code: HTTP status code returned by the broker
        body: Response body text
    """

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"broker responded with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body
