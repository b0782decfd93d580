"""
Token Manager for the session-aware HTTP client.

This module provides the login/logout flow on top of the API client and keeps
interested parties informed about authentication state changes.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, Callable, List

from authshared.exceptions import AuthClientError, LoginFailedError
from authshared.logging_config import AuditLogger, log_structured_error
from authshared.models import Notice

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Login Failed"
LOGIN_FAILED_NOTICE_ID = "login-failed"


class TokenManager:
    """
    Manages the signed-in state of one session.

    Stores the identity returned by the login endpoint, answers route-guard
    questions and clears the session on logout. Token refresh itself is
    handled by the client's refresh coordinator.
    """

    def __init__(self, api_client, audit_logger: Optional[AuditLogger] = None):
        self.api_client = api_client
        self.token_store = api_client.token_store
        self.navigator = api_client.navigator
        self.audit = audit_logger or AuditLogger()

        self._auth_callbacks: List[Callable[[bool], None]] = []
        self.last_error: Optional[LoginFailedError] = None

        logger.info("Token manager initialized")

    def add_auth_callback(self, callback: Callable[[bool], None]) -> None:
        """
        Add callback for authentication state changes.

        Args:
            callback: Function called with authentication status (bool)
        """
        self._auth_callbacks.append(callback)

    def _notify_auth_change(self, is_authenticated: bool) -> None:
        """Notify callbacks of authentication state change."""
        for callback in self._auth_callbacks:
            try:
                callback(is_authenticated)
            except Exception as e:
                logger.error(f"Error in auth callback: {e}")

    async def authenticate(self, credentials: Dict[str, Any]) -> bool:
        """
        Log in and store the returned token and display name.

        Args:
            credentials: Body posted to the login endpoint

        Returns:
            True if authentication successful
        """
        user_hint = credentials.get('username') if isinstance(credentials, dict) else None

        try:
            logger.info(f"Authenticating user: {user_hint or 'unknown'}")
            response = await self.api_client.login(credentials)

            body = response.data if isinstance(response.data, dict) else {}
            data = body.get('data') or {}
            token = data.get('token') if isinstance(data, dict) else None
            if not token:
                raise ValueError("Login response carried no token")

            self.token_store.store_session(token, data.get('name'))

        except (AuthClientError, ValueError) as e:
            self.last_error = LoginFailedError(f"Login failed: {e}", cause=e)
            log_structured_error(logger, self.last_error, url=self.api_client.settings.login_path)
            self.audit.log_authentication(user_hint, success=False, failure_reason=str(e))
            self.navigator.notify(Notice(LOGIN_FAILED_MESSAGE, LOGIN_FAILED_NOTICE_ID))
            self._notify_auth_change(False)
            return False

        self.last_error = None
        self.audit.log_authentication(self.token_store.get_display_name() or user_hint, success=True)
        self._notify_auth_change(True)
        logger.info("Authentication successful")
        return True

    def is_authenticated(self) -> bool:
        """Check if a session token is currently held."""
        return self.token_store.has_token()

    def get_current_token(self) -> Optional[str]:
        return self.token_store.get_token()

    def get_display_name(self) -> Optional[str]:
        return self.token_store.get_display_name()

    def get_token_claims(self) -> Dict[str, Any]:
        return self.token_store.get_claims()

    def get_token_expiration(self) -> Optional[datetime]:
        return self.token_store.get_expiration()

    def logout(self, redirect: bool = True) -> None:
        """
        Logout and clear authentication state.

        Args:
            redirect: Whether to navigate back to the entry route
        """
        logger.info("Logging out and clearing authentication state")

        self.token_store.clear()
        self._notify_auth_change(False)

        if redirect:
            self.navigator.redirect(self.api_client.settings.entry_route)
