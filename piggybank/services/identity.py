"""
Identity Provider

Answers one question: does this user id belong to a real account?

DESIGN DECISION: Identity is kept apart from the profile store. A user can
exist in the identity provider before their profile document is created
(that is exactly what /users/initialize does), so "has a profile" and
"is a real user" are different checks.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Iterable, Optional

import requests
import structlog
from google.auth.transport.requests import AuthorizedSession
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from piggybank.config import IdentitySettings, get_settings


logger = structlog.get_logger(__name__)


IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/projects/{project_id}/accounts:lookup"
IDENTITY_SCOPES = [
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/identitytoolkit",
]


class IdentityError(Exception):
    """Base exception for identity checks."""
    pass


class UnknownUserError(IdentityError):
    """The user id does not belong to any account."""

    def __init__(self, user_id: str):
        super().__init__(f"Unknown user: {user_id}")
        self.user_id = user_id


class IdentityServiceError(IdentityError):
    """The identity provider could not be reached or answered with an error."""
    pass


class IdentityProvider(ABC):
    """Verifies that user ids exist."""

    @abstractmethod
    async def verify_user(self, user_id: str) -> None:
        """
        Raises:
            UnknownUserError: The id is not a known account
            IdentityServiceError: The provider is unavailable
        """
        pass


class InMemoryIdentityProvider(IdentityProvider):
    """A fixed set of known ids. Used in tests and local development."""

    def __init__(self, known_user_ids: Optional[Iterable[str]] = None, accept_all: bool = False):
        self._known = set(known_user_ids or [])
        self._accept_all = accept_all

    def add_user(self, user_id: str) -> None:
        self._known.add(user_id)

    async def verify_user(self, user_id: str) -> None:
        if self._accept_all or user_id in self._known:
            return
        raise UnknownUserError(user_id)


class GoogleIdentityToolkitProvider(IdentityProvider):
    """
    Looks users up through the Identity Toolkit admin API.

    Uses a service account, so it works for any account in the project,
    not just the caller's own.
    """

    def __init__(
        self,
        settings: Optional[IdentitySettings] = None,
        session: Optional[AuthorizedSession] = None,
    ):
        self._settings = settings or get_settings().identity
        self._session = session

    def _get_session(self) -> AuthorizedSession:
        if self._session is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=IDENTITY_SCOPES,
                )
            except FileNotFoundError:
                raise IdentityServiceError(
                    f"Identity credentials file not found: {self._settings.credentials_path}"
                )
            self._session = AuthorizedSession(credentials)
        return self._session

    @retry(
        retry=retry_if_exception_type(IdentityServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _lookup(self, user_id: str) -> bool:
        """True if the account exists. Blocking."""
        url = IDENTITY_TOOLKIT_URL.format(project_id=self._settings.project_id)
        try:
            response = self._get_session().post(
                url,
                json={"localId": [user_id]},
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as e:
            raise IdentityServiceError(f"Identity lookup failed: {e}")

        if response.status_code == 400 and "USER_NOT_FOUND" in response.text:
            return False
        if response.status_code >= 400:
            raise IdentityServiceError(
                f"Identity lookup returned {response.status_code}: {response.text[:200]}"
            )

        # An unknown id yields 200 with no "users" key
        return bool(response.json().get("users"))

    async def verify_user(self, user_id: str) -> None:
        if not user_id:
            raise UnknownUserError(user_id)

        exists = await asyncio.to_thread(self._lookup, user_id)
        if not exists:
            logger.info("identity_user_not_found", user_id=user_id)
            raise UnknownUserError(user_id)
