"""Exceptions raised by campdex."""


class CampdexError(Exception):
    """Base class for campdex errors."""


class NotFound(CampdexError):
    """A lookup returned nothing."""


class InvalidInput(CampdexError, ValueError):
    """A malformed query or identifier, rejected before any remote call."""


class RemoteFailure(CampdexError):
    """Transport error or non-2xx response from the remote API."""

    def __init__(self, message: str, status: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class BuildCancelled(CampdexError):
    """An index build was interrupted before it committed."""
