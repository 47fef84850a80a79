"""Header construction for broker requests."""

from collections.abc import Iterable

API_VERSION_HEADER = "x-broker-api-version"
API_VERSION = "2.14"

# RFC 7230 section 6.1 connection-scoped headers
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


class HeaderBuilder:
    """Build outbound headers for the broker and relayed response headers."""

    def build_auth_headers(self, token: str) -> dict[str, str]:
        """Headers every outbound broker call carries."""
        return {
            "Authorization": f"Bearer {token}",
            API_VERSION_HEADER: API_VERSION,
        }

    def build_forward_headers(
        self,
        headers: Iterable[tuple[str, str]],
        token: str,
    ) -> list[tuple[str, str]]:
        """Pass through inbound headers, overriding auth and API version."""
        auth = self.build_auth_headers(token)
        overridden = {key.lower() for key in auth}
        upstream = [
            (key, value)
            for key, value in headers
            if key.lower() not in HOP_BY_HOP_HEADERS
            and key.lower() != "host"
            and key.lower() not in overridden
        ]
        upstream.extend(auth.items())
        return upstream

    def build_response_headers(self, headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
        """Relay broker response headers minus connection-scoped ones."""
        return [(key, value) for key, value in headers if key.lower() not in HOP_BY_HOP_HEADERS]
