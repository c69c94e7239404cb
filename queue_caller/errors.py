"""Shared error types.

Every failure in the viewer degrades to "try again on the next tick", so these
exceptions are caught by the background loops that raise them; they never
reach the user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class CallerError(Exception):
    """Base class for all queue_caller errors."""


class TransportError(CallerError):
    """The push channel could not be opened or dropped mid-stream."""


class PayloadError(CallerError):
    """A pushed message could not be decoded into a known shape."""


class FetchError(CallerError):
    """A REST request to the ticketing server failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    @classmethod
    def from_body(cls, status_code: int, body: Any) -> ErrorResponse:
        # The server answers errors with {"error": "<message>"}.
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return cls(code=str(status_code), message=body["error"])
        return cls(code=str(status_code), message="unexpected response")

    def to_exception(self, *, path: str) -> FetchError:
        status = int(self.code) if self.code.isdigit() else None
        return FetchError(f"{path}: {self.message} (HTTP {self.code})", status_code=status)
