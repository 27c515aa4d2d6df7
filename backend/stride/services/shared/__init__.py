"""Shared utilities used across services."""

from .clock import as_utc, utcnow
from .http_client import HTTPClient, HTTPClientError
from .once import Once

__all__ = [
    "HTTPClient",
    "HTTPClientError",
    "Once",
    "as_utc",
    "utcnow",
]
