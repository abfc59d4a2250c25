"""Errors raised by the SportsData.io client."""
from typing import Optional


class SportsDataError(Exception):
    """Base class for every failure to obtain a feed from SportsData.io."""

    def __init__(self, message: str, feed: Optional[str] = None):
        super().__init__(message)
        self.feed = feed


class TransportError(SportsDataError):
    """Connection, TLS or timeout failure before a response was read."""


class UpstreamStatusError(SportsDataError):
    """The API answered with a non-200 status."""

    def __init__(self, message: str, status_code: int, feed: Optional[str] = None):
        super().__init__(message, feed=feed)
        self.status_code = status_code


class ResponseTooLargeError(SportsDataError):
    """The response body exceeded the configured size cap."""


class DecodeError(SportsDataError):
    """The body was not JSON or did not match the expected entity shape."""
