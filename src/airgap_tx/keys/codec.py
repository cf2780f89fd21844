"""Public key codec — parse, compress, decompress, and compare secp256k1 keys.

Accepted public key inputs (``bytes`` or hex ``str``, ``0x`` optional):
- 33-byte SEC compressed (``02``/``03`` prefix)
- 65-byte SEC uncompressed (``04`` prefix)
- 64-byte raw ``x || y`` (uncompressed without prefix)

Constructive conversions raise :class:`InvalidKeyError`; the predicates
(:func:`equal`, :func:`is_valid_public_key`) never raise.
"""

from __future__ import annotations

from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa import numbertheory
from ecdsa.errors import MalformedPointError

from airgap_tx.errors.definitions import InvalidKeyError
from airgap_tx.utils.crypto import to_bytes

_CURVE = SECP256k1
_VALID_ENCODINGS = ("raw", "uncompressed", "compressed")

PublicKeyLike = bytes | str


def _verifying_key(pubkey: PublicKeyLike) -> VerifyingKey:
    """Parse *pubkey* into a point on secp256k1.

    Raises:
        InvalidKeyError: If the value is not hex, has the wrong length,
            or does not decode to a point on the curve.
    """
    if not isinstance(pubkey, (bytes, bytearray, str)):
        raise InvalidKeyError(f"public key must be bytes or hex, got {type(pubkey).__name__}")
    try:
        data = to_bytes(pubkey)
    except ValueError as exc:
        raise InvalidKeyError(f"public key is not valid hex: {pubkey!r}") from exc
    try:
        return VerifyingKey.from_string(
            data, curve=_CURVE, valid_encodings=_VALID_ENCODINGS
        )
    except (MalformedPointError, numbertheory.Error, ValueError) as exc:
        raise InvalidKeyError(f"invalid public key ({len(data)} bytes): {exc}") from exc


def to_compressed(pubkey: PublicKeyLike) -> bytes:
    """Return the 33-byte compressed form (``02``/``03`` parity prefix + x)."""
    return _verifying_key(pubkey).to_string("compressed")


def to_uncompressed(pubkey: PublicKeyLike, *, include_prefix: bool = True) -> bytes:
    """Return the uncompressed form, recovering y from the curve equation.

    Args:
        pubkey: Any accepted public key encoding.
        include_prefix: If True return 65 bytes with the ``04`` prefix,
            otherwise the 64-byte ``x || y``.
    """
    vk = _verifying_key(pubkey)
    if include_prefix:
        return vk.to_string("uncompressed")
    return vk.to_string("raw")


def normalize(pubkey: PublicKeyLike) -> str:
    """Canonical form used for equality: uncompressed hex without prefix."""
    return to_uncompressed(pubkey, include_prefix=False).hex()


def equal(a: PublicKeyLike, b: PublicKeyLike) -> bool:
    """True if both values encode the same point; False if either is malformed."""
    try:
        return normalize(a) == normalize(b)
    except InvalidKeyError:
        return False


def is_valid_public_key(value: PublicKeyLike) -> bool:
    try:
        _verifying_key(value)
    except InvalidKeyError:
        return False
    return True


def private_key_to_public_key(privkey_bytes: bytes, *, compressed: bool = False) -> bytes:
    """Derive the public key from a 32-byte private key.

    Only used by tests and local tooling; the signing workflow never holds
    a private key.
    """
    vk = SigningKey.from_string(privkey_bytes, curve=_CURVE).get_verifying_key()
    return vk.to_string("compressed" if compressed else "uncompressed")
