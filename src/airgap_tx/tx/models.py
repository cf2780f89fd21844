"""Signing request data models — transaction kinds, canonical args, artifacts.

Each transaction kind has its own frozen args dataclass holding every field
that affects the transaction hash, so that rebuilding from a persisted
request reproduces byte-identical output for the external signer's digest.
"""

from __future__ import annotations

import base64
import enum
from dataclasses import asdict, dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Transaction kinds
# ---------------------------------------------------------------------------


class TxKind(enum.StrEnum):
    """Supported transaction kinds.

    TRANSFER and CONTRACT_CALL are plain account-ledger transactions;
    EXPORT and IMPORT are atomic cross-ledger transactions built by the
    external ledger SDK.
    """

    TRANSFER = "transfer"
    CONTRACT_CALL = "contract_call"
    EXPORT = "export"
    IMPORT = "import"

    @property
    def is_atomic(self) -> bool:
        return self in (TxKind.EXPORT, TxKind.IMPORT)


# ---------------------------------------------------------------------------
# Canonical args
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransferArgs:
    """Plain value transfer on the account ledger (value in wei)."""

    nonce: int
    gas_price: int
    gas_limit: int
    to: str
    value: int
    chain_id: int

    def to_tx_dict(self) -> dict[str, Any]:
        return {
            "nonce": self.nonce,
            "gasPrice": self.gas_price,
            "gas": self.gas_limit,
            "to": self.to,
            "value": self.value,
            "data": b"",
            "chainId": self.chain_id,
        }


@dataclass(frozen=True)
class ContractCallArgs:
    """Fixed-payload contract call (e.g. opting out of a named program)."""

    nonce: int
    gas_price: int
    gas_limit: int
    to: str
    data: str
    chain_id: int
    program: str

    def to_tx_dict(self) -> dict[str, Any]:
        return {
            "nonce": self.nonce,
            "gasPrice": self.gas_price,
            "gas": self.gas_limit,
            "to": self.to,
            "value": 0,
            "data": bytes.fromhex(self.data.removeprefix("0x")),
            "chainId": self.chain_id,
        }


@dataclass(frozen=True)
class ExportArgs:
    """Account ledger → UTXO ledger export (amounts in nano units).

    ``amount`` already includes the destination chain's import fee.
    """

    amount: int
    asset_id: str
    destination_chain_id: str
    from_address: str
    from_bech: str
    to_addresses: tuple[str, ...]
    nonce: int
    locktime: int = 0
    threshold: int = 1
    fee: int | None = None


@dataclass(frozen=True)
class ImportArgs:
    """UTXO ledger → account ledger import.

    ``utxos`` is the hex-serialized UTXO set captured at build time.
    """

    to_address: str
    from_addresses: tuple[str, ...]
    source_chain_id: str
    change_addresses: tuple[str, ...]
    fee: int
    utxos: tuple[str, ...] = field(default_factory=tuple)


CanonicalArgs = TransferArgs | ContractCallArgs | ExportArgs | ImportArgs

_ARGS_TYPES: dict[TxKind, type] = {
    TxKind.TRANSFER: TransferArgs,
    TxKind.CONTRACT_CALL: ContractCallArgs,
    TxKind.EXPORT: ExportArgs,
    TxKind.IMPORT: ImportArgs,
}

_TUPLE_FIELDS = ("to_addresses", "from_addresses", "change_addresses", "utxos")


def args_to_dict(args: CanonicalArgs) -> dict[str, Any]:
    data = asdict(args)
    for name in _TUPLE_FIELDS:
        if name in data:
            data[name] = list(data[name])
    return data


def args_from_dict(kind: TxKind, data: dict[str, Any]) -> CanonicalArgs:
    """Rebuild the kind-specific args dataclass from its JSON form."""
    values = dict(data)
    for name in _TUPLE_FIELDS:
        if name in values:
            values[name] = tuple(values[name])
    return _ARGS_TYPES[kind](**values)


# ---------------------------------------------------------------------------
# Persisted artifacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UnsignedRequest:
    """A pending-signature artifact, immutable once persisted.

    Attributes:
        request_id: Opaque id chosen by the operator.
        kind: Transaction kind (selects the args shape).
        args: Canonical args sufficient to rebuild the unsigned transaction.
        message: Hex of the 32-byte digest the external signer must sign.
        used_fee: Fee (nano units) used for atomic kinds, else None.
        unsigned_tx: Hex of the unsigned transaction blob (atomic kinds).
    """

    request_id: str
    kind: TxKind
    args: CanonicalArgs
    message: str
    used_fee: int | None = None
    unsigned_tx: str = ""

    @property
    def message_hash(self) -> bytes:
        return bytes.fromhex(self.message)

    @property
    def signer_digest(self) -> str:
        """Base64 transport encoding of the digest for the custody service."""
        return base64.b64encode(self.message_hash).decode("ascii")

    def to_dict(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "transactionType": self.kind.value,
            "rawTx": args_to_dict(self.args),
            "message": self.message,
            "forDefiHash": self.signer_digest,
            "usedFee": self.used_fee,
            "unsignedTx": self.unsigned_tx,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UnsignedRequest:
        kind = TxKind(data["transactionType"])
        return cls(
            request_id=data["requestId"],
            kind=kind,
            args=args_from_dict(kind, data["rawTx"]),
            message=data["message"],
            used_fee=data.get("usedFee"),
            unsigned_tx=data.get("unsignedTx", ""),
        )


@dataclass(frozen=True)
class SignedResponse:
    """Signature returned by the external signer for a request."""

    request_id: str
    signature: str

    @classmethod
    def from_dict(cls, request_id: str, data: dict[str, Any]) -> SignedResponse:
        return cls(request_id=request_id, signature=data.get("signature") or "")


@dataclass(frozen=True)
class SignedTransaction:
    """A recombined transaction ready for broadcast."""

    request_id: str
    kind: TxKind
    raw: bytes

    @property
    def raw_hex(self) -> str:
        return "0x" + self.raw.hex()


@dataclass(frozen=True)
class BroadcastResult:
    """Outcome of sending a signed request to the network."""

    tx_id: str
    used_fee: int | None = None
