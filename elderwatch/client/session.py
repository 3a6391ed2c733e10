"""Client-side session state for dashboards."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from elderwatch.client.api_client import ElderWatchClient
from elderwatch.core.exceptions import ProvisioningError, Unauthenticated

logger = structlog.get_logger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a session context."""

    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass
class Session:
    """Signed-in user and the tokens that prove it."""

    user: dict
    access_token: str
    refresh_token: str | None = None


Listener = Callable[["SessionContext"], None]


class SessionContext:
    """
    Current user, session and role for one client.

    Starts in ``LOADING`` until :meth:`initialize` has checked for an existing
    session. Entering ``AUTHENTICATED`` never waits for the role: it is
    fetched by a background task and ``role`` is set once that settles. Pass
    the context explicitly to whatever needs identity.
    """

    def __init__(self, client: ElderWatchClient):
        """Initialize an unresolved context backed by an API client."""
        self.client = client
        self.state = SessionState.LOADING
        self.session: Session | None = None
        self.role: str | None = None
        self._role_task: asyncio.Task | None = None
        self._listeners: list[Listener] = []

    @property
    def user(self) -> dict | None:
        """The signed-in user, if any."""
        return self.session.user if self.session else None

    @property
    def loading(self) -> bool:
        """Whether the initial session check or the role lookup is pending."""
        if self.state is SessionState.LOADING:
            return True
        return self._role_task is not None and not self._role_task.done()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback run after every state or role change.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def initialize(
        self, access_token: str | None = None, refresh_token: str | None = None
    ) -> SessionState:
        """
        Restore a stored session, leaving ``LOADING``.

        An expired access token is renewed with the refresh token when one is
        given. Any other failure leaves the context unauthenticated before the
        error is raised.
        """
        try:
            if access_token:
                try:
                    data = await self.client.get_session(access_token)
                    self._enter_authenticated(Session(data["user"], access_token, refresh_token))
                    return self.state
                except Unauthenticated:
                    if refresh_token:
                        await self._restore_with_refresh(refresh_token)
                        return self.state
        except ProvisioningError as e:
            logger.error("session_check_failed", error=e.message)
            self._enter_unauthenticated()
            raise

        self._enter_unauthenticated()
        return self.state

    async def _restore_with_refresh(self, refresh_token: str) -> None:
        try:
            tokens = await self.client.refresh(refresh_token)
            data = await self.client.get_session(tokens["access_token"])
        except Unauthenticated:
            logger.info("session_restore_failed")
            self._enter_unauthenticated()
            return
        self._enter_authenticated(
            Session(data["user"], tokens["access_token"], tokens["refresh_token"])
        )

    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> dict:
        """Register a caregiver and sign in as them."""
        data = await self.client.sign_up(email, password, metadata)
        self._enter_authenticated(
            Session(data["user"], data["access_token"], data["refresh_token"])
        )
        return data["user"]

    async def sign_in(self, email: str, password: str) -> dict:
        """Sign in with email and password."""
        data = await self.client.sign_in(email, password)
        self._enter_authenticated(
            Session(data["user"], data["access_token"], data["refresh_token"])
        )
        return data["user"]

    async def sign_out(self) -> None:
        """Revoke the current session and forget it locally."""
        if self.session is None:
            self._enter_unauthenticated()
            return

        try:
            await self.client.sign_out(self.session.access_token, self.session.refresh_token)
        except Unauthenticated:
            # Already expired or revoked on the server
            pass
        self._enter_unauthenticated()

    def get_current_session(self) -> Session | None:
        """The current session, if signed in."""
        return self.session

    async def wait_for_role(self, timeout: float | None = None) -> str | None:
        """Wait until the background role lookup has settled."""
        if self._role_task is not None:
            await asyncio.wait_for(asyncio.shield(self._role_task), timeout)
        return self.role

    async def create_patient_account(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> dict:
        """
        Provision a patient linked to the signed-in caregiver.

        Raises the server's error unchanged. Callers should only re-fetch the
        patient list after this returns.
        """
        session = self._require_session()
        return await self.client.create_patient(session.access_token, email, password, metadata)

    async def list_patients(self) -> list[dict]:
        """List the signed-in caregiver's patients."""
        session = self._require_session()
        return await self.client.list_patients(session.access_token)

    def _require_session(self) -> Session:
        if self.session is None:
            raise Unauthenticated("Not signed in")
        return self.session

    def _enter_authenticated(self, session: Session) -> None:
        self._cancel_role_task()
        self.session = session
        self.role = None
        self.state = SessionState.AUTHENTICATED
        self._role_task = asyncio.create_task(self._settle_role(session))
        self._notify()

    def _enter_unauthenticated(self) -> None:
        self._cancel_role_task()
        self.session = None
        self.role = None
        self.state = SessionState.UNAUTHENTICATED
        self._notify()

    async def _settle_role(self, session: Session) -> None:
        try:
            role = await self.client.ensure_role(session.access_token)
        except ProvisioningError as e:
            logger.error("role_fetch_failed", error=e.message)
            role = None

        # Ignore results for a session that has since been replaced
        if self.session is session:
            self.role = role
            self._notify()

    def _cancel_role_task(self) -> None:
        if self._role_task is not None and not self._role_task.done():
            self._role_task.cancel()
        self._role_task = None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
