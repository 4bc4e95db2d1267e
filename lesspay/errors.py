from __future__ import annotations

from typing import Any, Optional


class LesspayError(Exception):
    """Base class for every error raised by the lesspay package."""


class ParameterTreeError(LesspayError, ValueError):
    """A value cannot be represented as a signable parameter tree."""


class SignatureEnvironmentError(LesspayError, RuntimeError):
    """The SHA-256 primitive is unavailable; signatures cannot be produced."""


class LesspayApiError(LesspayError):
    """The gateway answered with a transport-level or business-level failure."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
        msg: Optional[str] = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.msg = msg
        self.body = body
