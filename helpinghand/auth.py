"""
Authentication clients.

The service holds one signed-in identity at a time. `FirebaseAuthClient`
talks to the Firebase Identity Toolkit REST API; `InMemoryAuthClient` keeps
accounts in a dict for tests/local runs.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests

from helpinghand.errors import Unauthenticated

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
REQUEST_TIMEOUT = 30  # seconds
MIN_PASSWORD_LENGTH = 6

# Error codes, as reported by Identity Toolkit.
NETWORK_REQUEST_FAILED = "NETWORK_REQUEST_FAILED"
EMAIL_EXISTS = "EMAIL_EXISTS"
INVALID_EMAIL = "INVALID_EMAIL"
WEAK_PASSWORD = "WEAK_PASSWORD"
INVALID_LOGIN_CREDENTIALS = "INVALID_LOGIN_CREDENTIALS"

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class AuthUser:
    uid: str
    email: str = ""
    display_name: str = ""
    id_token: Optional[str] = field(default=None, repr=False)


class AuthError(Exception):
    """Authentication failure carrying the backend error code."""

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


class AuthClient(Protocol):
    """What view-models and the household logic need from authentication."""

    @property
    def current_user(self) -> Optional[AuthUser]:
        ...

    def sign_in(self, email: str, password: str) -> AuthUser:
        ...

    def register(self, email: str, password: str, display_name: str = "") -> AuthUser:
        ...

    def update_display_name(self, display_name: str) -> AuthUser:
        ...

    def sign_out(self) -> None:
        ...


@dataclass
class _Account:
    uid: str
    email: str
    password: str
    display_name: str = ""


class InMemoryAuthClient:
    """Test double for authentication."""

    def __init__(self):
        self._lock = threading.Lock()
        self.accounts: Dict[str, _Account] = {}
        self._current_user: Optional[AuthUser] = None

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._current_user

    def add_account(self, email: str, password: str, display_name: str = "") -> AuthUser:
        """Registers an account without signing it in."""
        email = email.strip()
        if not _EMAIL_PATTERN.match(email):
            raise AuthError(INVALID_EMAIL)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                WEAK_PASSWORD,
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters",
            )
        with self._lock:
            if email.lower() in self.accounts:
                raise AuthError(EMAIL_EXISTS)
            account = _Account(
                uid=uuid.uuid4().hex[:28],
                email=email,
                password=password,
                display_name=display_name,
            )
            self.accounts[email.lower()] = account
        return AuthUser(uid=account.uid, email=account.email, display_name=display_name)

    def sign_in(self, email: str, password: str) -> AuthUser:
        with self._lock:
            account = self.accounts.get(email.strip().lower())
        if account is None or account.password != password:
            raise AuthError(INVALID_LOGIN_CREDENTIALS)
        self._current_user = AuthUser(
            uid=account.uid,
            email=account.email,
            display_name=account.display_name,
            id_token=uuid.uuid4().hex,
        )
        return self._current_user

    def register(self, email: str, password: str, display_name: str = "") -> AuthUser:
        self.add_account(email, password, display_name)
        return self.sign_in(email, password)

    def update_display_name(self, display_name: str) -> AuthUser:
        user = self._current_user
        if user is None:
            raise Unauthenticated("No signed-in user")
        with self._lock:
            account = self.accounts.get(user.email.lower())
            if account:
                account.display_name = display_name
        self._current_user = dataclasses.replace(user, display_name=display_name)
        return self._current_user

    def sign_out(self) -> None:
        self._current_user = None


class FirebaseAuthClient:
    """Email/password authentication against Firebase Identity Toolkit."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = IDENTITY_TOOLKIT_URL,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("A Firebase web API key is required for FirebaseAuthClient")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._current_user: Optional[AuthUser] = None

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._current_user

    def _post(self, method: str, payload: dict) -> dict:
        url = f"{self.base_url}/accounts:{method}"
        try:
            response = self.session.post(
                url, params={"key": self.api_key}, json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise AuthError(NETWORK_REQUEST_FAILED, str(e)) from e

        if not response.ok:
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                message = f"HTTP {response.status_code}"
            # Messages look like "WEAK_PASSWORD : Password should be ..."
            code = message.split(":", 1)[0].strip()
            raise AuthError(code, message)
        return response.json()

    def sign_in(self, email: str, password: str) -> AuthUser:
        data = self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        self._current_user = AuthUser(
            uid=data["localId"],
            email=data.get("email", email),
            display_name=data.get("displayName", ""),
            id_token=data.get("idToken"),
        )
        return self._current_user

    def register(self, email: str, password: str, display_name: str = "") -> AuthUser:
        data = self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        self._current_user = AuthUser(
            uid=data["localId"],
            email=data.get("email", email),
            display_name="",
            id_token=data.get("idToken"),
        )
        if display_name:
            try:
                self.update_display_name(display_name)
            except AuthError:
                # The account exists and is signed in; only the name is missing.
                logger.exception("register: setting displayName failed for %s", email)
        return self._current_user

    def update_display_name(self, display_name: str) -> AuthUser:
        user = self._current_user
        if user is None:
            raise Unauthenticated("No signed-in user")
        data = self._post(
            "update",
            {
                "idToken": user.id_token,
                "displayName": display_name,
                "returnSecureToken": True,
            },
        )
        self._current_user = dataclasses.replace(
            user,
            display_name=data.get("displayName", display_name),
            id_token=data.get("idToken", user.id_token),
        )
        return self._current_user

    def sign_out(self) -> None:
        self._current_user = None
