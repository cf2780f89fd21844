"""AirgapError — base exception class for all airgap-tx errors."""

from __future__ import annotations


class AirgapError(Exception):
    """Base error for all detached-signing operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
    """

    def __init__(self, message: str, *, code: str = "airgap-error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code
