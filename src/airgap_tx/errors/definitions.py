"""Error taxonomy for key handling, request storage, and finalization."""

from __future__ import annotations

from typing import TYPE_CHECKING

from airgap_tx.errors.airgap_errors import AirgapError

if TYPE_CHECKING:
    from airgap_tx.chain.finalize import FinalizationState

# -- Construction-time validation ------------------------------------------


class InvalidKeyError(AirgapError):
    """Value is not a valid secp256k1 public key encoding."""

    def __init__(self, message: str = "invalid public key") -> None:
        super().__init__(message, code="invalid-key")


class InvalidAddressError(AirgapError):
    """Value is not a valid account or UTXO address."""

    def __init__(self, message: str = "invalid address") -> None:
        super().__init__(message, code="invalid-address")


class InvalidSignatureError(AirgapError):
    """Signature bytes, recovery indicator, or (r, s) out of range."""

    def __init__(self, message: str = "invalid signature") -> None:
        super().__init__(message, code="invalid-signature")


class SignatureMismatchError(AirgapError):
    """Returned signature was not produced by the expected signer."""

    def __init__(self, message: str = "signature does not match the expected signer") -> None:
        super().__init__(message, code="signature-mismatch")


# -- Request storage -------------------------------------------------------


class AlreadyExistsError(AirgapError):
    def __init__(self, message: str = "request already exists") -> None:
        super().__init__(message, code="already-exists")


class NotFoundError(AirgapError):
    def __init__(self, message: str = "not found") -> None:
        super().__init__(message, code="not-found")


class InvalidRequestIdError(AirgapError):
    """Request id is empty or could escape the store directory."""

    def __init__(self, message: str = "invalid request id") -> None:
        super().__init__(message, code="invalid-request-id")


class MissingSignatureError(AirgapError):
    """A signed record exists but carries no signature payload."""

    def __init__(self, message: str = "signed record does not contain a signature") -> None:
        super().__init__(message, code="missing-signature")


# -- Transaction assembly --------------------------------------------------


class AlreadyOptedOutError(AirgapError):
    def __init__(self, message: str = "account is already an opt-out candidate") -> None:
        super().__init__(message, code="already-opted-out")


class RebuildMismatchError(AirgapError):
    """Rebuilding from stored args did not reproduce the stored digest."""

    def __init__(self, message: str = "rebuilt transaction does not match stored digest") -> None:
        super().__init__(message, code="rebuild-mismatch")


# -- Ledger / finalization -------------------------------------------------


class UpstreamUnavailableError(AirgapError):
    """Ledger client call failed at the transport level."""

    def __init__(self, message: str = "ledger node unavailable") -> None:
        super().__init__(message, code="upstream-unavailable")


class LedgerRejectedError(AirgapError):
    """Ledger node answered with a JSON-RPC error object."""

    def __init__(self, message: str, *, rpc_code: int | None = None) -> None:
        super().__init__(message, code="ledger-rejected")
        self.rpc_code = rpc_code


class FinalizationTimeoutError(AirgapError):
    """Sequence counter did not advance within the attempt budget.

    Attributes:
        elapsed_ms: Cumulative delay slept before giving up.
        state: Final waiter state (status ``TIMED_OUT``).
    """

    def __init__(self, elapsed_ms: int, state: FinalizationState | None = None) -> None:
        super().__init__(f"Response timeout after {elapsed_ms}ms", code="finalization-timeout")
        self.elapsed_ms = elapsed_ms
        self.state = state
