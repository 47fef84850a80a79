"""FastAPI route handlers."""

import secrets

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from starlette.concurrency import run_in_threadpool

from core.config import ProxySettings
from ui.log_utils import write_incoming_log

_basic = HTTPBasic(auto_error=False)


def require_basic_auth(settings: ProxySettings):
    """Build a dependency enforcing inbound basic auth when it is configured."""
    if not settings.basic_auth_enabled:
        async def no_auth() -> None:
            return None

        return no_auth

    async def dependency(credentials: HTTPBasicCredentials | None = Depends(_basic)) -> None:
        if credentials is not None:
            user_ok = secrets.compare_digest(
                credentials.username.encode("utf-8"), settings.username.encode("utf-8")
            )
            password_ok = secrets.compare_digest(
                credentials.password.encode("utf-8"), settings.password.encode("utf-8")
            )
            if user_ok and password_ok:
                return
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return dependency


async def handle_forward(request: Request, settings: ProxySettings) -> Response | StreamingResponse:
    """Forward any path to the broker."""
    if settings.request_logs:
        await run_in_threadpool(
            write_incoming_log,
            request.method,
            request.url.path,
            dict(request.headers),
            request.url.query,
            keep=settings.max_request_logs,
        )
    forwarder = request.app.state.forwarder
    return await forwarder.forward(request)
