from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse

from finblog.api.schemas import Envelope, UserResponse
from finblog.logging import get_logger
from finblog.service.errors import PermissionDeniedError
from finblog.service.runtime import get_runtime
from finblog.storage.models import User

logger = get_logger(__name__)

router = APIRouter()


def _http_error(
    code: str, message: str, status_code: int, details: Optional[dict | str] = None
) -> HTTPException:
    payload: dict[str, object] = {
        "status": "error",
        "error": {"code": code, "message": message},
    }
    if details is not None:
        payload["error"]["details"] = details  # type: ignore[index]
    return HTTPException(status_code=status_code, detail=payload)


def _cookie_domain(base_url: str) -> str:
    return urlparse(base_url).hostname or base_url


def _session_cookie(request: Request) -> str:
    cookie_name = get_runtime().settings.cookie_name
    token = request.cookies.get(cookie_name)
    if not token:
        raise _http_error("unauthorized", "missing session cookie", status_code=401)
    return token


async def get_current_user(token: str = Depends(_session_cookie)) -> User:
    runtime = get_runtime()
    return await runtime.sessions.session(token)


@router.get("/auth/login", status_code=302, tags=["auth"])
async def login():
    """Redirect the browser to the provider's authorization page."""
    runtime = get_runtime()
    return RedirectResponse(runtime.auth.start_login(), status_code=302)


@router.get("/auth/login/callback", status_code=302, tags=["auth"])
async def login_callback(
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
):
    """Finish the OAuth flow and hand the browser a session cookie.

    The provider sends ``error`` instead of ``code`` when the user declines
    the authorization.
    """
    if error:
        message = f"{error_description} ({error})" if error_description else error
        raise PermissionDeniedError(message, detail={"error": error})
    if not code:
        raise _http_error("validation_error", "missing authorization code", status_code=400)

    runtime = get_runtime()
    session = await runtime.auth.login(code)

    settings = runtime.settings
    response = RedirectResponse(settings.base_url or "/", status_code=302)
    response.set_cookie(
        settings.cookie_name,
        session.token,
        path="/",
        secure=True,
        httponly=True,
        domain=_cookie_domain(settings.base_url),
    )
    return response


@router.get("/auth/logout", response_model=Envelope, tags=["auth"])
async def logout(response: Response, token: str = Depends(_session_cookie)):
    runtime = get_runtime()
    await runtime.sessions.logout(token)
    response.delete_cookie(
        runtime.settings.cookie_name,
        path="/",
        secure=True,
        httponly=True,
        domain=_cookie_domain(runtime.settings.base_url),
    )
    return Envelope(status="ok", data={"message": "session revoked"})


@router.get("/auth/me", response_model=UserResponse, tags=["auth"])
@router.get("/api/auth/me", response_model=UserResponse, tags=["auth"], include_in_schema=False)
async def me(user: User = Depends(get_current_user)):
    return UserResponse.from_user(user)
