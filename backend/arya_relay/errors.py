from __future__ import annotations


class RelayError(Exception):
    pass


class BadRequest(RelayError):
    pass


class ProviderError(RelayError):
    """Raised by a provider client when the upstream rejects or breaks a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamUnavailable(RelayError):
    """Upstream failed before anything was written to the caller."""


class UpstreamInterrupted(RelayError):
    """Upstream failed after the event stream was committed."""
