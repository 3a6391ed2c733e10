"""Async client for the Elder Watch API."""

from elderwatch.client.api_client import ElderWatchClient
from elderwatch.client.session import Session, SessionContext, SessionState

__all__ = ["ElderWatchClient", "Session", "SessionContext", "SessionState"]
