"""Bearer token sources for authenticating to the broker."""

import json
import time
from pathlib import Path

import httpx
from starlette.concurrency import run_in_threadpool

from core.config import TokenSettings
from core.exceptions import ConfigurationError, CredentialError
from core.protocols import TokenSource


class StaticTokenSource:
    """Hand out a fixed, pre-provisioned token."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def get_token(self) -> str:
        if not self._token:
            raise CredentialError("no static token configured")
        return self._token


class FileTokenSource:
    """Read the token from a file on every call.

    The file holds either a raw token or JSON with ``access_token`` and an
    optional ``expires_at`` (epoch seconds). An external process keeps it fresh.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    async def get_token(self) -> str:
        try:
            raw = (await run_in_threadpool(self._path.read_text)).strip()
        except OSError as e:
            raise CredentialError(f"cannot read token file {self._path}: {e}") from e

        if not raw.startswith("{"):
            if not raw:
                raise CredentialError(f"token file {self._path} is empty")
            return raw

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CredentialError(f"invalid token file {self._path}: {e}") from e

        token = data.get("access_token")
        if not token:
            raise CredentialError(f"token file {self._path} has no access_token")
        expires_at = data.get("expires_at")
        if expires_at is not None and expires_at <= time.time():
            raise CredentialError(f"token in {self._path} expired at {time.ctime(expires_at)}")
        return token


class ClientCredentialsTokenSource:
    """Obtain a token with an OAuth2 client_credentials grant on every call."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._scope = scope
        self._client = client

    async def get_token(self) -> str:
        data = {"grant_type": "client_credentials"}
        if self._scope:
            data["scope"] = self._scope
        auth = httpx.BasicAuth(self._client_id, self._client_secret)

        try:
            if self._client is not None:
                response = await self._client.post(self._token_url, data=data, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(self._token_url, data=data, auth=auth)
        except httpx.RequestError as e:
            raise CredentialError(f"token request failed: {e}") from e

        if response.status_code != 200:
            raise CredentialError(
                f"token request failed: {response.status_code} - {response.text}"
            )
        try:
            token = response.json()["access_token"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise CredentialError(f"token response has no access_token: {e}") from e
        return token


def build_token_source(settings: TokenSettings) -> TokenSource:
    """Create the token source selected by configuration."""
    if settings.kind == "static":
        return StaticTokenSource(settings.token)
    if settings.kind == "file":
        if not settings.path:
            raise ConfigurationError("token.path is required for the file token source")
        return FileTokenSource(Path(settings.path).expanduser())
    if not (settings.token_url and settings.client_id and settings.client_secret):
        raise ConfigurationError(
            "token.token_url, token.client_id and token.client_secret are required "
            "for the client_credentials token source"
        )
    return ClientCredentialsTokenSource(
        settings.token_url,
        settings.client_id,
        settings.client_secret,
        settings.scope,
    )
