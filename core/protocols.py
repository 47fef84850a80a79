"""Shared protocol definitions."""

from typing import Protocol


class TokenSource(Protocol):
    """Protocol for bearer token retrieval."""

    async def get_token(self) -> str: ...


class RequestLogger(Protocol):
    """Protocol for request logging (Dashboard)."""

    def log_forward(
        self,
        method: str,
        path: str,
        status: int,
        time_to_headers_ms: float,
    ) -> None: ...
    def log_error(self, route: str, status: int, message: str) -> None: ...
