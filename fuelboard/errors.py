from __future__ import annotations

from typing import Optional


class DashboardError(Exception):
    """Base class for errors raised by the dashboard core."""


class TransportError(DashboardError):
    """The remote metrics API could not be reached or answered with a failure."""

    def __init__(self, message: str, *, endpoint: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status


class MalformedPersistedState(DashboardError):
    """Stored filter state could not be parsed. Always recovered locally."""
