"""Tests for the error hierarchy."""

from __future__ import annotations

import pytest

from airgap_tx.errors.airgap_errors import AirgapError
from airgap_tx.errors.definitions import (
    AlreadyExistsError,
    AlreadyOptedOutError,
    FinalizationTimeoutError,
    InvalidAddressError,
    InvalidKeyError,
    InvalidRequestIdError,
    InvalidSignatureError,
    LedgerRejectedError,
    MissingSignatureError,
    NotFoundError,
    RebuildMismatchError,
    SignatureMismatchError,
    UpstreamUnavailableError,
)


class TestAirgapError:
    def test_attributes(self) -> None:
        err = AirgapError("boom", code="custom")
        assert err.message == "boom"
        assert err.code == "custom"
        assert str(err) == "boom"

    def test_default_code(self) -> None:
        assert AirgapError("x").code == "airgap-error"


class TestDefinitions:
    @pytest.mark.parametrize(
        ("cls", "code"),
        [
            (InvalidKeyError, "invalid-key"),
            (InvalidAddressError, "invalid-address"),
            (InvalidSignatureError, "invalid-signature"),
            (SignatureMismatchError, "signature-mismatch"),
            (AlreadyExistsError, "already-exists"),
            (NotFoundError, "not-found"),
            (InvalidRequestIdError, "invalid-request-id"),
            (MissingSignatureError, "missing-signature"),
            (AlreadyOptedOutError, "already-opted-out"),
            (RebuildMismatchError, "rebuild-mismatch"),
            (UpstreamUnavailableError, "upstream-unavailable"),
        ],
    )
    def test_codes_and_defaults(self, cls: type[AirgapError], code: str) -> None:
        err = cls()
        assert isinstance(err, AirgapError)
        assert err.code == code
        assert err.message

    def test_custom_message(self) -> None:
        assert NotFoundError("request r1 not found").message == "request r1 not found"

    def test_ledger_rejected(self) -> None:
        err = LedgerRejectedError("nonce too low", rpc_code=-32000)
        assert err.code == "ledger-rejected"
        assert err.rpc_code == -32000

    def test_finalization_timeout(self) -> None:
        err = FinalizationTimeoutError(1500)
        assert str(err) == "Response timeout after 1500ms"
        assert err.elapsed_ms == 1500
        assert err.state is None
        assert err.code == "finalization-timeout"

    def test_catch_as_base(self) -> None:
        with pytest.raises(AirgapError):
            raise AlreadyExistsError
