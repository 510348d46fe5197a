from __future__ import annotations


class MetricZError(Exception):
    """Base class for errors raised by the MetricZ widget."""


class TransportError(MetricZError):
    """The status endpoint could not be reached or read."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class HTTPStatusError(TransportError):
    """The status endpoint answered with a non-2xx status."""

    def __init__(self, status: int, reason: str = "", body: str = "") -> None:
        head = f"HTTP {status} {reason}".strip()
        detail = f"{head}: {body}" if body else head
        super().__init__(detail)
        self.status = status
        self.reason = reason
        self.body = body
