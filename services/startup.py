"""Startup validation of broker connectivity and credentials."""

import httpx

from core.exceptions import BackendRejectionError, CredentialError, TransportError, UpstreamTimeoutError
from core.headers import HeaderBuilder
from core.protocols import TokenSource

CATALOG_PATH = "/v2/catalog"


class StartupChecker:
    """Issue one authenticated catalog request before the proxy serves traffic."""

    def __init__(
        self,
        broker_url: str,
        token_source: TokenSource,
        client: httpx.AsyncClient,
        header_builder: HeaderBuilder | None = None,
    ) -> None:
        self._broker_url = broker_url.rstrip("/")
        self._token_source = token_source
        self._client = client
        self._headers = header_builder or HeaderBuilder()

    async def perform_startup_check(self) -> None:
        """Raise if the broker cannot be reached or rejects our credentials.

        Raises:
            CredentialError: the token source failed
            TransportError: the catalog request did not complete
            BackendRejectionError: the broker answered with a status other than 200
        """
        try:
            token = await self._token_source.get_token()
        except Exception as e:
            raise CredentialError(f"failed to obtain token: {e}") from e

        request = self._client.build_request(
            "GET",
            f"{self._broker_url}{CATALOG_PATH}",
            headers=self._headers.build_auth_headers(token),
        )
        try:
            response = await self._client.send(request)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"catalog request timed out: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"catalog request failed: {e}") from e

        if response.status_code != 200:
            raise BackendRejectionError(response.status_code, response.text)
