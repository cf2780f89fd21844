"""Public key recovery from recoverable ECDSA signatures.

The custody service returns 65-byte signatures ``r || s || v`` where ``v``
is the recovery indicator (0/1, or 27/28 in the legacy offset form).
Recovery lets the workflow confirm that a returned signature was produced
by the expected key before spending a nonce on it.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Self

from ecdsa import SECP256k1, SigningKey
from ecdsa import ecdsa as _ecdsa
from ecdsa import numbertheory
from ecdsa.util import sigencode_strings_canonize

from airgap_tx.errors.definitions import InvalidSignatureError
from airgap_tx.utils.crypto import keccak256, to_bytes

_CURVE = SECP256k1
_ORDER = _CURVE.order
_LEGACY_V_OFFSET = 27
_EIP155_V_OFFSET = 35


@dataclass(frozen=True)
class Signature:
    """A recoverable secp256k1 signature.

    Attributes:
        r: Signature r component.
        s: Signature s component.
        recovery_id: Parity of the ephemeral point's y-coordinate (0 or 1).
    """

    r: int
    s: int
    recovery_id: int

    def __post_init__(self) -> None:
        if not 0 < self.r < _ORDER or not 0 < self.s < _ORDER:
            raise InvalidSignatureError("signature (r, s) out of range")
        if self.recovery_id not in (0, 1):
            raise InvalidSignatureError(f"invalid recovery indicator: {self.recovery_id}")

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        """Parse 65 bytes ``r || s || v``; v may be 0/1 or 27/28."""
        if len(data) != 65:
            raise InvalidSignatureError(f"signature must be 65 bytes, got {len(data)}")
        v = data[64]
        if v >= _LEGACY_V_OFFSET:
            v -= _LEGACY_V_OFFSET
        return cls(
            r=int.from_bytes(data[:32], "big"),
            s=int.from_bytes(data[32:64], "big"),
            recovery_id=v,
        )

    @classmethod
    def from_hex(cls, value: str) -> Self:
        try:
            data = to_bytes(value)
        except ValueError as exc:
            raise InvalidSignatureError("signature is not valid hex") from exc
        return cls.from_bytes(data)

    def to_bytes(self) -> bytes:
        """Serialize as ``r || s || recovery_id``."""
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.recovery_id])

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    def eth_v(self, chain_id: int) -> int:
        """EIP-155 ``v`` value for a transaction on *chain_id*."""
        return self.recovery_id + _EIP155_V_OFFSET + 2 * chain_id


def _as_signature(signature: Signature | bytes | str) -> Signature:
    if isinstance(signature, Signature):
        return signature
    if isinstance(signature, str):
        return Signature.from_hex(signature)
    return Signature.from_bytes(signature)


def recover_from_digest(digest: bytes | str, signature: Signature | bytes | str) -> bytes:
    """Recover the 65-byte uncompressed public key that signed *digest*.

    Raises:
        InvalidSignatureError: If the digest is not 32 bytes, the indicator
            or (r, s) is out of range, or r is not an x-coordinate on the curve.
    """
    try:
        digest_bytes = to_bytes(digest)
    except ValueError as exc:
        raise InvalidSignatureError("digest is not valid hex") from exc
    if len(digest_bytes) != 32:
        raise InvalidSignatureError(f"digest must be 32 bytes, got {len(digest_bytes)}")
    sig = _as_signature(signature)

    try:
        candidates = _ecdsa.Signature(sig.r, sig.s).recover_public_keys(
            int.from_bytes(digest_bytes, "big"), _CURVE.generator
        )
    except (numbertheory.Error, _ecdsa.InvalidPointError) as exc:
        raise InvalidSignatureError(f"public key not recoverable: {exc}") from exc

    # recover_public_keys yields the even-y candidate first
    point = candidates[sig.recovery_id].point
    return b"\x04" + point.x().to_bytes(32, "big") + point.y().to_bytes(32, "big")


def hash_personal_message(message: str, ledger: str = "Ethereum") -> bytes:
    """Keccak-256 of ``"\\x19<ledger> Signed Message:\\n" + len + message``.

    The length field is the message's character count in UTF-16 code
    units, not its UTF-8 byte length; verifiers of this format count the
    same way, so non-ASCII messages must not be "corrected" here.
    """
    length = len(message.encode("utf-16-le")) // 2
    return keccak256(f"\x19{ledger} Signed Message:\n{length}{message}".encode())


def recover_from_message(
    message: str, signature: Signature | bytes | str, *, ledger: str = "Ethereum"
) -> bytes:
    """Recover the signer of a personal message (see :func:`hash_personal_message`)."""
    return recover_from_digest(hash_personal_message(message, ledger), signature)


def sign_recoverable(privkey_bytes: bytes, digest: bytes) -> Signature:
    """Produce a low-s recoverable signature in the custody service's format.

    Only for tests and local tooling.
    """
    sk = SigningKey.from_string(privkey_bytes, curve=_CURVE)
    r_bytes, s_bytes = sk.sign_digest_deterministic(
        digest, hashfunc=hashlib.sha256, sigencode=sigencode_strings_canonize
    )
    expected = sk.get_verifying_key().to_string("uncompressed")
    r = int.from_bytes(r_bytes, "big")
    s = int.from_bytes(s_bytes, "big")
    for recovery_id in (0, 1):
        candidate = Signature(r=r, s=s, recovery_id=recovery_id)
        if recover_from_digest(digest, candidate) == expected:
            return candidate
    raise InvalidSignatureError("could not determine recovery indicator")
