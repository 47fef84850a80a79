"""Reverse-proxy forwarding of inbound requests to the broker."""

import asyncio
import json
import time
from collections.abc import AsyncIterator
from urllib.parse import quote, urlsplit

import httpx
from fastapi import Request, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect

from core.headers import HeaderBuilder
from core.protocols import RequestLogger, TokenSource

ROUTE_NAME = "broker"

# nginx's "client closed request"
CLIENT_CLOSED_REQUEST = 499

DISCONNECT_POLL_INTERVAL = 0.1

# Characters allowed unescaped in a path or query; "%" keeps existing escapes intact
PATH_SAFE = "/%:@!$&'()*+,;=-._~"
QUERY_SAFE = PATH_SAFE + "?"


class RequestForwarder:
    """Forward any request to the broker with a fresh bearer token attached."""

    def __init__(
        self,
        broker_url: str,
        token_source: TokenSource,
        client: httpx.AsyncClient,
        logger: RequestLogger,
        header_builder: HeaderBuilder | None = None,
    ) -> None:
        parts = urlsplit(broker_url)
        self._scheme = parts.scheme
        self._netloc = parts.netloc
        self._token_source = token_source
        self._client = client
        self._logger = logger
        self._headers = header_builder or HeaderBuilder()

    def target_url(self, request: Request) -> str:
        """Same path and query bytes as the inbound request, broker authority."""
        raw_path = (request.scope.get("raw_path") or b"").split(b"?", 1)[0]
        path = quote(raw_path, safe=PATH_SAFE) if raw_path else quote(request.url.path, safe=PATH_SAFE)
        url = f"{self._scheme}://{self._netloc}{path}"
        query = request.scope.get("query_string") or b""
        if query:
            url += f"?{quote(query, safe=QUERY_SAFE)}"
        return url

    async def forward(self, request: Request) -> Response | StreamingResponse:
        """Forward one inbound request and relay the broker's response."""
        started = time.perf_counter()
        path = request.url.path

        try:
            token = await self._token_source.get_token()
        except Exception as e:
            self._logger.log_error(ROUTE_NAME, 502, f"token retrieval failed: {e}")
            return _error_response(502, f"Token retrieval failed: {e}")

        body_sent = asyncio.Event()
        if _has_body(request):
            content = _relay_body(request, body_sent)
        else:
            content = None
            body_sent.set()

        upstream_request = self._client.build_request(
            request.method,
            self.target_url(request),
            headers=self._headers.build_forward_headers(request.headers.items(), token),
            content=content,
        )

        try:
            response = await self._send_unless_disconnected(request, upstream_request, body_sent)
        except httpx.TimeoutException:
            self._logger.log_error(ROUTE_NAME, 504, "Upstream timeout")
            return _error_response(504, "Upstream timeout")
        except httpx.RequestError as e:
            self._logger.log_error(ROUTE_NAME, 502, str(e))
            return _error_response(502, f"Upstream connection error: {e}")
        except ClientDisconnect:
            self._logger.log_error(ROUTE_NAME, CLIENT_CLOSED_REQUEST, f"client disconnected: {request.method} {path}")
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        time_to_headers_ms = (time.perf_counter() - started) * 1000
        self._logger.log_forward(request.method, path, response.status_code, time_to_headers_ms)

        if response.is_stream_consumed:
            # Transport already read the body; relay the decoded bytes instead
            body = _iter_content(response.content)
            dropped = {"content-encoding", "content-length"}
        else:
            body = response.aiter_raw()
            dropped = set()

        relayed = StreamingResponse(
            body,
            status_code=response.status_code,
            background=BackgroundTask(self._cleanup_streaming, response),
        )
        # Replace Starlette's defaults so the broker's headers pass through as-is
        relayed.raw_headers = [
            (key.encode("latin-1"), value.encode("latin-1"))
            for key, value in self._headers.build_response_headers(response.headers.multi_items())
            if key.lower() not in dropped
        ]
        return relayed

    async def _send_unless_disconnected(
        self,
        request: Request,
        upstream_request: httpx.Request,
        body_sent: asyncio.Event,
    ) -> httpx.Response:
        """Send to the broker, aborting the call if the caller goes away first.

        Raises:
            ClientDisconnect: the caller disconnected before response headers arrived
        """
        send = asyncio.ensure_future(self._client.send(upstream_request, stream=True))
        watch = asyncio.ensure_future(_wait_for_disconnect(request, body_sent))
        try:
            await asyncio.wait({send, watch}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not send.done():
                send.cancel()
            watch.cancel()
            await asyncio.gather(watch, return_exceptions=True)

        if send.cancelled() or not send.done():
            await asyncio.gather(send, return_exceptions=True)
            raise ClientDisconnect()
        return send.result()

    async def _cleanup_streaming(self, response: httpx.Response) -> None:
        """Clean up streaming resources."""
        await response.aclose()


async def _wait_for_disconnect(request: Request, body_sent: asyncio.Event) -> None:
    # receive() is owned by the body relay until the body is fully sent
    await body_sent.wait()
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


async def _relay_body(request: Request, body_sent: asyncio.Event) -> AsyncIterator[bytes]:
    async for chunk in request.stream():
        yield chunk
    body_sent.set()


async def _iter_content(content: bytes) -> AsyncIterator[bytes]:
    yield content


def _has_body(request: Request) -> bool:
    if "transfer-encoding" in request.headers:
        return True
    return request.headers.get("content-length", "0") not in ("", "0")


def _error_response(status_code: int, message: str) -> Response:
    return Response(
        content=json.dumps({"error": message}),
        status_code=status_code,
        media_type="application/json",
    )
