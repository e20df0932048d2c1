from __future__ import annotations

from typing import Any, List, Optional, Protocol
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from finblog.logging import get_logger
from finblog.service.errors import (
    AuthError,
    ConnectionFailedError,
    InitializationError,
    PermissionDeniedError,
    SerializationError,
)
from finblog.storage.common import SessionStore
from finblog.storage.models import Session, User

logger = get_logger(__name__)

GITHUB_URL = "https://github.com"
GITHUB_API_URL = "https://api.github.com"
OAUTH_SCOPES = ("read:user", "read:org")
CALLBACK_PATH = "/auth/login/callback"
USER_AGENT = "finblog"
DEFAULT_TIMEOUT_SECONDS = 10.0


class GithubAccessToken(BaseModel):
    """Body of the token endpoint; GitHub reports failures here with HTTP 200."""

    model_config = ConfigDict(extra="ignore")

    access_token: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


class GithubUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int = Field(ge=0, strict=True)
    login: str
    name: Optional[str] = None
    avatar_url: str


class GithubOrg(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str


_GITHUB_ORGS = TypeAdapter(List[GithubOrg])


def _describe(exc: Exception) -> str:
    # httpx timeouts often carry an empty message
    return str(exc) or type(exc).__name__


class Authenticator(Protocol):
    def start_login(self) -> str: ...

    async def login(self, code: str) -> Session: ...

    async def close(self) -> None: ...


class GithubAuthenticator:
    """Logs users in with GitHub OAuth and admits members of one organization.

    ``login`` runs the authorization-code exchange, then fetches the profile
    and organization memberships, and only when the configured organization
    is among them asks the session store for a token. Any failing step aborts
    the attempt; nothing is retried because the authorization code is
    single-use.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        client_id: str,
        client_secret: str,
        org: str,
        base_url: str,
        github_url: str = GITHUB_URL,
        api_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not client_id:
            raise InitializationError("client ID is empty")
        if not client_secret:
            raise InitializationError("client secret is empty")
        if not org:
            raise InitializationError("organization is empty")

        self.store = store
        self.client_id = client_id
        self.client_secret = client_secret
        self.org = org
        self.base_url = base_url.rstrip("/")
        self.url = github_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            headers={"User-Agent": USER_AGENT},
        )

    @property
    def callback_url(self) -> str:
        return f"{self.base_url}{CALLBACK_PATH}"

    def start_login(self) -> str:
        params = {
            "client_id": self.client_id,
            "scope": ",".join(OAUTH_SCOPES),
            "redirect_uri": self.callback_url,
        }
        return f"{self.url}/login/oauth/authorize?{urlencode(params, safe=':,/')}"

    async def login(self, code: str) -> Session:
        access_token = await self._exchange_code(code)
        profile = await self._fetch_user(access_token)
        orgs = await self._fetch_orgs(access_token)

        if not any(org.login == self.org for org in orgs):
            logger.warning("login_denied_not_member", login=profile.login, org=self.org)
            raise PermissionDeniedError(f"not a member of {self.org}", detail={"org": self.org})

        user = User(
            id=profile.id,
            login=profile.login,
            name=profile.name or profile.login,
            avatar_url=profile.avatar_url,
        )
        try:
            token = await self.store.save(user)
        except AuthError as exc:
            raise ConnectionFailedError(f"creating session: {exc.message}") from exc

        logger.info("login_succeeded", login=user.login, user_id=user.id)
        return Session(user=user, token=token)

    async def close(self) -> None:
        await self.http.aclose()

    async def _exchange_code(self, code: str) -> str:
        form = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
        }
        try:
            response = await self.http.post(
                f"{self.url}/login/oauth/access_token",
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.error("oauth_token_request_failed", error=_describe(exc))
            raise ConnectionFailedError(f"getting access_token: {_describe(exc)}") from exc

        try:
            payload = GithubAccessToken.model_validate(response.json())
        except ValueError as exc:
            if not response.is_success:
                raise ConnectionFailedError(
                    f"getting access_token: provider returned status {response.status_code}"
                ) from exc
            logger.error("oauth_token_parse_error", error=str(exc))
            raise SerializationError(f"reading access_token: {exc}") from exc

        # Checked before the HTTP status: GitHub answers bad codes with 200 + error
        if payload.error:
            description = payload.error_description or ""
            message = f"{description} ({payload.error})" if description else payload.error
            logger.warning("oauth_token_rejected", error_code=payload.error)
            raise PermissionDeniedError(
                message,
                detail={"error": payload.error, "error_description": description},
            )
        if not response.is_success:
            raise ConnectionFailedError(
                f"getting access_token: provider returned status {response.status_code}"
            )
        if not payload.access_token:
            raise PermissionDeniedError("access token is empty")
        return payload.access_token

    async def _get_json(self, path: str, access_token: str, step: str) -> Any:
        try:
            response = await self.http.get(
                f"{self.api_url}{path}",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/vnd.github+json",
                },
            )
        except httpx.HTTPError as exc:
            logger.error("github_request_failed", step=step, error=_describe(exc))
            raise ConnectionFailedError(f"getting {step}: {_describe(exc)}") from exc

        if response.status_code in (401, 403):
            raise PermissionDeniedError(
                f"getting {step}: provider returned status {response.status_code}"
            )
        if not response.is_success:
            raise ConnectionFailedError(
                f"getting {step}: provider returned status {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise SerializationError(f"reading {step}: {exc}") from exc

    async def _fetch_user(self, access_token: str) -> GithubUser:
        data = await self._get_json("/user", access_token, "user")
        try:
            return GithubUser.model_validate(data)
        except ValueError as exc:
            raise SerializationError(f"reading user: {exc}") from exc

    async def _fetch_orgs(self, access_token: str) -> List[GithubOrg]:
        data = await self._get_json("/user/orgs", access_token, "org")
        try:
            return _GITHUB_ORGS.validate_python(data)
        except ValueError as exc:
            raise SerializationError(f"reading org: {exc}") from exc


__all__ = [
    "Authenticator",
    "CALLBACK_PATH",
    "GithubAuthenticator",
    "OAUTH_SCOPES",
]
