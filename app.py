"""FastAPI application factory."""

from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Request

from api.handlers import handle_forward, require_basic_auth
from core.config import Config
from core.exceptions import ProxyError
from core.headers import HeaderBuilder
from core.protocols import RequestLogger, TokenSource
from services.forwarder import RequestForwarder
from services.startup import StartupChecker
from ui.log_utils import write_cli_log

FORWARDED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_broker_client(config: Config, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Create the pooled HTTP client used for all broker calls."""
    limits = httpx.Limits(
        max_connections=config.limits.max_connections,
        max_keepalive_connections=config.limits.max_keepalive_connections,
    )
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.limits.timeout, connect=config.limits.connect_timeout),
        limits=limits,
        transport=transport,
    )


def create_app(
    config: Config,
    logger: RequestLogger,
    token_source: TokenSource,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The lifespan runs the startup check before the server accepts traffic;
    any failure propagates and aborts startup.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        broker_client = create_broker_client(config, transport)
        header_builder = HeaderBuilder()
        try:
            checker = StartupChecker(config.broker.url, token_source, broker_client, header_builder)
            try:
                await checker.perform_startup_check()
            except ProxyError as e:
                write_cli_log("ERROR", "Startup check failed", error=e)
                raise
            write_cli_log("STARTUP", "Startup check passed", broker=config.broker.url)
            app.state.forwarder = RequestForwarder(
                config.broker.url,
                token_source,
                broker_client,
                logger,
                header_builder,
            )
            yield
        finally:
            await broker_client.aclose()

    app = FastAPI(
        title="Broker Proxy",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.api_route(
        "/{path:path}",
        methods=FORWARDED_METHODS,
        dependencies=[Depends(require_basic_auth(config.proxy))],
    )
    async def proxy_broker(request: Request):
        return await handle_forward(request, config.proxy)

    return app
