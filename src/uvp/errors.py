from __future__ import annotations


class UvpError(Exception):
    """Base class for pipeline errors."""


class TransportError(UvpError):
    """A channel was unreachable or answered with a non-2xx status."""

    def __init__(self, channel: str, message: str, status_code: int | None = None):
        super().__init__(f"{channel} channel: {message}")
        self.channel = channel
        self.status_code = status_code


class PayloadShapeError(TransportError):
    """Structured channel answered 2xx but the body is not a recognised record payload."""


class NetworkError(UvpError):
    """No channel produced records. The only error surfaced to end users."""


class DecodeError(UvpError):
    """Key descriptor, signature or hash could not be decoded. Maps to indeterminate."""

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or reason)
        self.reason = reason


class VerificationFailure(UvpError):
    """Cryptographic check ran and did not pass. Maps to invalid."""

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or reason)
        self.reason = reason


__all__ = [
    "UvpError",
    "TransportError",
    "PayloadShapeError",
    "NetworkError",
    "DecodeError",
    "VerificationFailure",
]
