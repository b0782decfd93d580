"""
Core interfaces for the session-aware HTTP client.

This module defines the abstract interfaces that pluggable components must
implement so the pipeline can be wired with real or scripted collaborators.
"""

from abc import ABC, abstractmethod
from typing import Optional, Any

from .models import RequestConfig, Response, Notice


class ITransport(ABC):
    """Interface for the component that puts a request on the wire."""

    @abstractmethod
    async def send(self, config: RequestConfig) -> Response:
        """Send a request and return the response for any HTTP status."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        pass


class INavigator(ABC):
    """Interface for forcing a route change with a user-facing notice."""

    @abstractmethod
    def redirect(self, route: str, notice: Optional[Notice] = None) -> None:
        """Navigate to a route, optionally showing a notice first."""
        pass

    @abstractmethod
    def notify(self, notice: Notice) -> None:
        """Show a notice without navigating."""
        pass


class ISessionStorage(ABC):
    """Interface for tab-scoped key/value storage."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Get a stored value."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: Any) -> None:
        """Store a value."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a stored value."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every stored value."""
        pass
