"""HTTP client for the Elder Watch API."""

from typing import Any

import httpx
import structlog

from elderwatch.core.exceptions import (
    ERRORS_BY_CODE,
    Forbidden,
    InternalError,
    ProvisioningError,
    Unauthenticated,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def error_from_response(response: httpx.Response) -> ProvisioningError:
    """
    Rebuild the server-side exception from an error response.

    Args:
        response: Non-2xx response

    Returns:
        The matching exception instance
    """
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = str(body.get("error") or response.reason_phrase or "Request failed")
    error_cls = ERRORS_BY_CODE.get(str(body.get("code")))

    if error_cls is None:
        if response.status_code == 401:
            error_cls = Unauthenticated
        elif response.status_code == 403:
            error_cls = Forbidden
        elif response.status_code in (400, 422):
            error_cls = ValidationError
        else:
            error_cls = InternalError

    if error_cls is ValidationError:
        return ValidationError(message, field=body.get("field"))
    return error_cls(message)


class ElderWatchClient:
    """
    Thin async wrapper over the REST API.

    Every failure is raised as the same ``ProvisioningError`` subclass the
    server reported. Transport failures and timeouts become ``InternalError``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        api_prefix: str = "/api/v1",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client for an API base URL."""
        self.api_prefix = api_prefix
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ElderWatchClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = await self._http.request(
                method, f"{self.api_prefix}{path}", json=json, headers=headers
            )
        except httpx.TimeoutException as e:
            logger.warning("api_request_timed_out", method=method, path=path)
            raise InternalError("Request timed out") from e
        except httpx.HTTPError as e:
            logger.warning("api_request_failed", method=method, path=path, error=str(e))
            raise InternalError(f"Request failed: {e!s}") from e

        if response.is_success:
            return response.json() if response.content else None
        raise error_from_response(response)

    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> dict:
        """Register a caregiver; returns tokens, user and role."""
        return await self._request(
            "POST",
            "/auth/signup",
            json={"email": email, "password": password, "metadata": metadata or {}},
        )

    async def sign_in(self, email: str, password: str) -> dict:
        """Sign in; returns tokens, user and role."""
        return await self._request(
            "POST", "/auth/signin", json={"email": email, "password": password}
        )

    async def sign_out(self, access_token: str, refresh_token: str | None = None) -> None:
        """Revoke a session's tokens."""
        await self._request(
            "POST", "/auth/signout", token=access_token, json={"refresh_token": refresh_token}
        )

    async def get_session(self, access_token: str) -> dict:
        """Return the user and role behind an access token."""
        return await self._request("GET", "/auth/session", token=access_token)

    async def refresh(self, refresh_token: str) -> dict:
        """Exchange a refresh token for a new token pair."""
        return await self._request(
            "POST", "/auth/refresh", json={"refresh_token": refresh_token}
        )

    async def resolve_role(self, access_token: str) -> str | None:
        """Read the caller's role without assigning one."""
        data = await self._request("GET", "/users/me/role", token=access_token)
        return data["role"]

    async def ensure_role(self, access_token: str) -> str | None:
        """Read the caller's role, letting the server assign the default one."""
        data = await self._request("POST", "/users/me/role/ensure", token=access_token)
        return data["role"]

    async def create_patient(
        self,
        access_token: str,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict:
        """Provision a patient account; returns the new user's id and email."""
        data = await self._request(
            "POST",
            "/patients",
            token=access_token,
            json={"email": email, "password": password, "metadata": metadata or {}},
        )
        return data["user"]

    async def list_patients(self, access_token: str) -> list[dict]:
        """List the calling caregiver's patients."""
        data = await self._request("GET", "/patients", token=access_token)
        return data["items"]
