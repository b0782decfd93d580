"""
Session-scoped token storage for the HTTP client.

This module keeps the current access token and the signed-in user's display
name for the lifetime of one browsing session. Nothing is written to disk.
"""

import logging
import threading
from datetime import datetime
from typing import Optional, Dict, Any

from jose import jwt, JWTError

from authshared.interfaces import ISessionStorage
from authshared.logging_config import mask_token

logger = logging.getLogger(__name__)


class SessionStorage(ISessionStorage):
    """
    In-memory key/value storage living as long as the process-side session.

    Values are stored as strings, like a browser tab's session storage.
    """

    def __init__(self):
        self._items: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: Any) -> None:
        with self._lock:
            self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class SessionTokenStore:
    """
    Single source of truth for the current access token.

    Every reader goes through get_token() at the moment it needs the value;
    the token is replaced wholesale and never patched.
    """

    TOKEN_KEY = "access_token"
    DISPLAY_NAME_KEY = "user_full_name"

    def __init__(self, storage: Optional[ISessionStorage] = None):
        self.storage = storage or SessionStorage()

    def get_token(self) -> Optional[str]:
        """Get the current access token, or None when signed out."""
        return self.storage.get_item(self.TOKEN_KEY)

    def set_token(self, token: str) -> None:
        """
        Replace the current access token.

        Args:
            token: New opaque access token

        Raises:
            ValueError: If the token is empty
        """
        if not token or not isinstance(token, str):
            raise ValueError("Access token must be a non-empty string")

        self.storage.set_item(self.TOKEN_KEY, token)
        logger.debug(f"Access token stored: {mask_token(token)}")

    def get_display_name(self) -> Optional[str]:
        """Get the signed-in user's display name."""
        return self.storage.get_item(self.DISPLAY_NAME_KEY)

    def set_display_name(self, name: Optional[str]) -> None:
        if name is None:
            self.storage.remove_item(self.DISPLAY_NAME_KEY)
        else:
            self.storage.set_item(self.DISPLAY_NAME_KEY, name)

    def store_session(self, token: str, display_name: Optional[str] = None) -> None:
        """Store the identity returned by a successful login."""
        self.set_token(token)
        self.set_display_name(display_name)
        logger.info(f"Session stored for user: {display_name or 'unknown'}")

    def has_token(self) -> bool:
        return bool(self.get_token())

    def clear(self) -> None:
        """Forget the token and identity metadata."""
        self.storage.remove_item(self.TOKEN_KEY)
        self.storage.remove_item(self.DISPLAY_NAME_KEY)
        logger.info("Session token cleared")

    def get_claims(self) -> Dict[str, Any]:
        """
        Read the token's claims without verifying its signature.

        Returns:
            Claims dictionary, empty for opaque (non-JWT) tokens
        """
        token = self.get_token()
        if not token:
            return {}

        try:
            return jwt.get_unverified_claims(token)
        except JWTError as e:
            logger.debug(f"Token is not a readable JWT: {e}")
            return {}

    def get_expiration(self) -> Optional[datetime]:
        """
        Expiration time advertised by the token, if any.

        Returns:
            Expiration datetime or None if not available
        """
        claims = self.get_claims()
        expires_at = claims.get('exp', claims.get('expires_at'))
        if expires_at is None:
            return None

        try:
            return datetime.fromtimestamp(float(expires_at))
        except (TypeError, ValueError, OverflowError, OSError):
            logger.warning(f"Invalid expiration claim in token: {expires_at!r}")
            return None
