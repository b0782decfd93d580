"""
Forced navigation for the HTTP client.

The navigator is handed to the pipeline once at start-up. It wraps two optional
callables supplied by the host application: one that changes route and one
that shows a transient notice. Either may be missing, in which case the
corresponding step only logs.
"""

import logging
import time
from typing import Callable, Dict, Optional

from authshared.interfaces import INavigator
from authshared.models import Notice

logger = logging.getLogger(__name__)


class Navigator(INavigator):
    """
    Performs forced route changes with a user-facing notice.

    Notices sharing a notice_id are collapsed while the first one is still
    on screen, so a burst of failing calls shows one message.
    """

    def __init__(
        self,
        navigate: Optional[Callable[[str], None]] = None,
        show_notice: Optional[Callable[[Notice], None]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._navigate = navigate
        self._show_notice = show_notice
        self._clock = clock
        self._visible_until: Dict[str, float] = {}

    @property
    def can_navigate(self) -> bool:
        return self._navigate is not None

    def notify(self, notice: Notice) -> None:
        """Show a notice unless one with the same id is still visible."""
        now = self._clock()
        visible_until = self._visible_until.get(notice.notice_id)
        if visible_until is not None and now < visible_until:
            logger.debug(f"Notice '{notice.notice_id}' already visible, skipping")
            return

        self._visible_until[notice.notice_id] = now + notice.duration_ms / 1000.0

        if self._show_notice is None:
            logger.warning(f"Notice: {notice.message}")
            return

        try:
            self._show_notice(notice)
        except Exception as e:
            logger.error(f"Error in notice callback: {e}")

    def redirect(self, route: str, notice: Optional[Notice] = None) -> None:
        """
        Show the notice (if any) and force a route change.

        Args:
            route: Target route, usually the unauthenticated entry screen
            notice: Optional transient message
        """
        if notice is not None:
            self.notify(notice)

        if self._navigate is None:
            logger.info(f"No navigation handler registered; skipping redirect to {route}")
            return

        try:
            self._navigate(route)
            logger.info(f"Redirected to {route}")
        except Exception as e:
            logger.error(f"Error in navigation callback: {e}")
