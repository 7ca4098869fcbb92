"""
Authenticated request/response transport to the Remote Store.

One request per call, bearer credential read from the Local Store, bounded
by a fixed timeout. Failures are mapped onto the sync error taxonomy so the
sync client never sees a raw requests exception.
"""

import logging
from typing import Any

import requests

from productive.lib.constants import DEFAULT_SYNC_TIMEOUT
from productive.store.local import LocalStore
from productive.sync.errors import ApiError, NetworkError, Timeout, Unauthenticated

logger = logging.getLogger(__name__)


class Transport:
    """JSON over HTTP(S) with bearer auth."""

    def __init__(
        self,
        base_url: str,
        credentials: LocalStore,
        timeout: float = DEFAULT_SYNC_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = float(timeout)
        self._session = session or requests.Session()

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def request(self, endpoint: str, body: Any = None, method: str = "POST") -> dict:
        """
        Perform one authenticated request.

        Args:
            endpoint: Path relative to the base URL, e.g. "/data/sync"
            body: JSON-serialisable request body, or None
            method: HTTP method, POST by default

        Returns:
            Decoded JSON response body

        Raises:
            Unauthenticated: no stored credential (no request is sent)
            Timeout: request exceeded the timeout
            NetworkError: request could not be sent or received
            ApiError: non-2xx response
        """
        token = self.credentials.get_token()
        if not token:
            raise Unauthenticated()

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        kwargs: dict[str, Any] = {"headers": headers, "timeout": self.timeout}
        if body is not None:
            kwargs["json"] = body

        try:
            response = self._session.request(method.upper(), self._url(endpoint), **kwargs)
        except requests.Timeout:
            raise Timeout(endpoint, self.timeout) from None
        except requests.RequestException as e:
            raise NetworkError(f"{method.upper()} {endpoint} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ApiError(_error_message(response), response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from {endpoint}: {e}") from e

    def login(self, email: str, password: str) -> dict:
        """
        Exchange credentials for a bearer token and store it.

        Returns:
            The user record from the login response
        """
        try:
            response = self._session.post(
                self._url("/auth/login"),
                json={"email": email, "password": password},
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise Timeout("/auth/login", self.timeout) from None
        except requests.RequestException as e:
            raise NetworkError(f"POST /auth/login failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ApiError(_error_message(response), response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from /auth/login: {e}") from e
        if not isinstance(body, dict) or not body.get("token"):
            raise ApiError("Login response carried no token", response.status_code)

        user = body.get("user") if isinstance(body.get("user"), dict) else {}
        self.credentials.set_token(body["token"])
        logger.info(f"[SYNC] Logged in as {user.get('username', email)}")
        return user

    def health(self) -> bool:
        """Unauthenticated reachability probe against /health."""
        try:
            response = self._session.get(self._url("/health"), timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"[SYNC] Health probe failed: {e}")
            return False
        return 200 <= response.status_code < 300

    def close(self) -> None:
        self._session.close()


def _error_message(response: requests.Response) -> str:
    """Server-provided error message when available, else the status code."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"HTTP {response.status_code}"
