"""Authorization header providers for the REST job API."""

import threading
from typing import Optional

import requests
from requests.auth import AuthBase

from lakequery.common.exceptions import AuthError, ErrorCode, ServerError, transport_error
from lakequery.logging import get_logger

logger = get_logger(__name__)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a ``Retry-After`` header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class BearerTokenAuth(AuthBase):
    """Sends a personal access token as ``Authorization: Bearer <token>``."""

    def __init__(self, token: str):
        self._token = token

    def __call__(self, request):
        request.headers["Authorization"] = f"Bearer {self._token}"
        return request


class PasswordLoginAuth(AuthBase):
    """Exchanges username/password for a session token on first use.

    The token is shared by every request made through the owning client and
    fetched at most once at a time. ``invalidate`` drops a token the remote
    rejected so the next request logs in again.
    """

    TOKEN_PREFIX = "_dremio"

    def __init__(
        self,
        session: requests.Session,
        login_url: str,
        username: str,
        password: str,
        timeout: float,
    ):
        self._session = session
        self._login_url = login_url
        self._username = username
        self._password = password
        self._timeout = timeout
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def token(self) -> str:
        with self._lock:
            if self._token is None:
                self._token = self._login()
            return self._token

    def invalidate(self, stale_token: Optional[str] = None) -> None:
        with self._lock:
            if stale_token is None or self._token == stale_token:
                self._token = None

    def _login(self) -> str:
        try:
            response = self._session.post(
                self._login_url,
                json={"userName": self._username, "password": self._password},
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise transport_error(
                f"Login request failed: {exc}",
                url=self._login_url,
                operation="login",
                cause=exc,
            ) from exc

        if response.status_code in (401, 403):
            raise AuthError(
                f"Login rejected for user '{self._username}'",
                details={"status_code": response.status_code},
            )
        if response.status_code == 429:
            raise ServerError(
                "Login rate limited",
                status_code=response.status_code,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                error_code=ErrorCode.RATE_LIMIT_ERROR,
            )
        if response.status_code >= 500:
            raise ServerError(
                f"Login failed with HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        if not response.ok:
            raise AuthError(
                f"Login failed with HTTP {response.status_code}: {response.text[:200]}",
                details={"status_code": response.status_code},
            )

        token = (response.json() or {}).get("token")
        if not token:
            raise AuthError("Login response did not contain a token")
        logger.info("Logged in to remote engine", extra={"user": self._username})
        return token

    def __call__(self, request):
        request.headers["Authorization"] = f"{self.TOKEN_PREFIX}{self.token}"
        return request
