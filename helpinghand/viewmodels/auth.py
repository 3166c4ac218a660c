from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from helpinghand.auth import (
    EMAIL_EXISTS,
    INVALID_EMAIL,
    NETWORK_REQUEST_FAILED,
    WEAK_PASSWORD,
    AuthClient,
    AuthError,
    AuthUser,
)
from helpinghand.errors import Unauthenticated
from helpinghand.live import MutableState

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error. Check your internet connection and try again."

REGISTRATION_MESSAGES = {
    NETWORK_REQUEST_FAILED: NETWORK_ERROR_MESSAGE,
    EMAIL_EXISTS: "That email is already in use.",
    INVALID_EMAIL: "That email address is invalid.",
    WEAK_PASSWORD: "Password is too weak.",
}


@dataclass(frozen=True)
class AuthUiState:
    is_loading: bool = False
    error_message: Optional[str] = None


def registration_error_message(error: Exception) -> str:
    if isinstance(error, AuthError) and error.code in REGISTRATION_MESSAGES:
        return REGISTRATION_MESSAGES[error.code]
    return f"Registration failed: {str(error) or 'Unknown error.'}"


def login_error_message(error: Exception) -> str:
    if isinstance(error, AuthError) and error.code == NETWORK_REQUEST_FAILED:
        return NETWORK_ERROR_MESSAGE
    return str(error) or "Login failed"


class AuthViewModel:
    def __init__(self, auth: AuthClient):
        self.auth = auth
        self.current_user: MutableState[Optional[AuthUser]] = MutableState(auth.current_user)
        self.ui_state: MutableState[AuthUiState] = MutableState(AuthUiState())

    async def login(self, email: str, password: str) -> bool:
        email = email.strip()
        if not email or not password:
            self.ui_state.value = AuthUiState(error_message="Email and password are required.")
            return False

        self.ui_state.value = AuthUiState(is_loading=True)
        try:
            user = await asyncio.to_thread(self.auth.sign_in, email, password)
        except Exception as e:
            logger.warning("login: failed for %s: %s", email, e)
            self.ui_state.value = AuthUiState(error_message=login_error_message(e))
            return False

        self.current_user.value = user
        self.ui_state.value = AuthUiState()
        logger.info("login: signed in %s", user.uid)
        return True

    async def register(self, name: str, email: str, password: str) -> bool:
        email = email.strip()
        if not email or not password:
            self.ui_state.value = AuthUiState(error_message="Email and password are required.")
            return False

        self.ui_state.value = AuthUiState(is_loading=True)
        try:
            user = await asyncio.to_thread(self.auth.register, email, password, name.strip())
        except Exception as e:
            logger.warning("register: failed for %s: %s", email, e)
            self.ui_state.value = AuthUiState(error_message=registration_error_message(e))
            return False

        self.current_user.value = user
        self.ui_state.value = AuthUiState()
        logger.info("register: created %s", user.uid)
        return True

    def logout(self) -> None:
        self.auth.sign_out()
        self.current_user.value = None
        self.ui_state.value = AuthUiState()

    async def update_display_name(self, name: str) -> bool:
        name = name.strip()
        if not name:
            self.ui_state.value = AuthUiState(error_message="Display name can't be blank.")
            return False
        if self.auth.current_user is None:
            self.ui_state.value = AuthUiState(error_message="Not logged in.")
            return False

        self.ui_state.value = AuthUiState(is_loading=True)
        try:
            user = await asyncio.to_thread(self.auth.update_display_name, name)
        except Unauthenticated:
            self.ui_state.value = AuthUiState(error_message="Not logged in.")
            return False
        except Exception as e:
            logger.exception("update_display_name: failed")
            self.ui_state.value = AuthUiState(error_message=str(e) or "Update failed")
            return False

        self.current_user.value = user
        self.ui_state.value = AuthUiState()
        return True
