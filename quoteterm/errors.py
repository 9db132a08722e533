from __future__ import annotations


class QuoteServiceError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StreamClosedError(RuntimeError):
    """Streaming transport was lost; the owning client instance is done."""
