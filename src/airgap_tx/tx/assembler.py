"""Transaction assembler — build unsigned requests and recombine signatures.

Per request, three stages:
1. Build — assemble canonical args and the digest the external signer signs
2. Persist — hand the request to the request store
3. Recombine — rebuild from stored args, verify the returned signature's
   signer, attach it, and emit broadcastable bytes

When no explicit fee is given for an atomic kind, the transaction is built
twice: once provisionally to measure its cost, then with
``fee = cost × base_fee``. Exactly two passes; the second build's fee is
what the request reports as ``used_fee``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from airgap_tx.chain.client import ZERO_ADDRESS
from airgap_tx.errors.definitions import (
    AlreadyOptedOutError,
    NotFoundError,
    RebuildMismatchError,
    SignatureMismatchError,
)
from airgap_tx.keys.address import equal_account_address, normalize_account_address
from airgap_tx.keys.codec import equal
from airgap_tx.keys.recovery import Signature, recover_from_digest
from airgap_tx.tx import evm
from airgap_tx.tx.models import (
    ContractCallArgs,
    ExportArgs,
    ImportArgs,
    SignedTransaction,
    TransferArgs,
    TxKind,
    UnsignedRequest,
)
from airgap_tx.utils.crypto import sha256

if TYPE_CHECKING:
    from pathlib import Path

    from airgap_tx.chain.client import AtomicTxCodec
    from airgap_tx.context import AirgapContext
    from airgap_tx.tx.models import SignedResponse

logger = logging.getLogger(__name__)

# Transfer amounts are given in nano units (10^-9); the ledger counts wei.
_NANO_TO_WEI = 10**9


class TxAssembler:
    """Builds and recombines detached-signing transactions for one context."""

    def __init__(self, ctx: AirgapContext) -> None:
        self._ctx = ctx

    # ------------------------------------------------------------------
    # Build: account-ledger kinds
    # ------------------------------------------------------------------

    async def build_transfer(
        self, request_id: str, to: str, amount: int, *, nonce: int | None = None
    ) -> UnsignedRequest:
        """Plain value transfer of *amount* nano units to *to*.

        Raises:
            InvalidAddressError: If *to* is not an account address.
        """
        to = normalize_account_address(to)
        if nonce is None:
            nonce = await self._ctx.ledger.get_sequence_counter(self._ctx.account_address)
        defaults = self._ctx.config.tx
        args = TransferArgs(
            nonce=nonce,
            gas_price=defaults.gas_price,
            gas_limit=defaults.gas_limit,
            to=to,
            value=amount * _NANO_TO_WEI,
            chain_id=self._ctx.network.chain_id,
        )
        return self._evm_request(request_id, TxKind.TRANSFER, args)

    async def build_opt_out(self, request_id: str, *, nonce: int | None = None) -> UnsignedRequest:
        """Fixed-payload call opting the account out of the configured program.

        Raises:
            NotFoundError: If the registry has no contract for the program.
            AlreadyOptedOutError: If the account is already an opt-out candidate.
        """
        ledger = self._ctx.ledger
        defaults = self._ctx.config.tx
        program = defaults.opt_out_program

        contract = await ledger.get_contract_address(defaults.registry_address, program)
        if equal_account_address(contract, ZERO_ADDRESS):
            raise NotFoundError(f"{program} contract address not found")
        if await ledger.is_opt_out_candidate(contract, self._ctx.account_address):
            address = self._ctx.account_address
            raise AlreadyOptedOutError(f"{address} is already an opt out candidate")

        if nonce is None:
            nonce = await ledger.get_sequence_counter(self._ctx.account_address)
        args = ContractCallArgs(
            nonce=nonce,
            gas_price=defaults.gas_price,
            gas_limit=defaults.gas_limit,
            to=normalize_account_address(contract),
            data=evm.call_data(defaults.opt_out_function),
            chain_id=self._ctx.network.chain_id,
            program=program,
        )
        return self._evm_request(request_id, TxKind.CONTRACT_CALL, args)

    # ------------------------------------------------------------------
    # Build: atomic kinds
    # ------------------------------------------------------------------

    async def build_export(
        self, request_id: str, amount: int, *, fee: int | None = None
    ) -> UnsignedRequest:
        """Export *amount* (nano units) from the account ledger to the UTXO ledger."""
        codec = self._codec()
        ctx = self._ctx
        nonce = await ctx.ledger.get_sequence_counter(ctx.account_address)
        import_fee = await ctx.ledger.get_default_import_fee()

        args = ExportArgs(
            amount=amount + import_fee,
            asset_id=ctx.network.asset_id,
            destination_chain_id=ctx.network.p_chain_blockchain_id,
            from_address=ctx.account_address,
            from_bech=ctx.c_address_bech,
            to_addresses=(ctx.p_address,),
            nonce=nonce,
            fee=fee,
        )
        unsigned = await codec.build_export_tx(args)
        if fee is None:
            base_fee = await ctx.ledger.get_base_fee()
            args = replace(args, fee=base_fee * codec.export_cost(unsigned))
            unsigned = await codec.build_export_tx(args)
        return self._atomic_request(request_id, TxKind.EXPORT, args, unsigned)

    async def build_import(self, request_id: str, *, fee: int | None = None) -> UnsignedRequest:
        """Import funds previously exported from the UTXO ledger."""
        codec = self._codec()
        ctx = self._ctx
        base_fee = await ctx.ledger.get_base_fee()
        source = ctx.network.p_chain_blockchain_id
        utxos = await ctx.ledger.fetch_utxos([ctx.c_address_bech], source)

        args = ImportArgs(
            to_address=ctx.account_address,
            from_addresses=(ctx.c_address_bech,),
            source_chain_id=source,
            change_addresses=(ctx.c_address_bech,),
            fee=base_fee if fee is None else fee,
            utxos=tuple(utxos),
        )
        unsigned = await codec.build_import_tx(args)
        if fee is None:
            args = replace(args, fee=base_fee * codec.import_cost(unsigned))
            unsigned = await codec.build_import_tx(args)
        return self._atomic_request(request_id, TxKind.IMPORT, args, unsigned)

    # ------------------------------------------------------------------
    # Persist
    # ------------------------------------------------------------------

    def persist(self, request: UnsignedRequest) -> Path:
        """Store *request*; raises ``AlreadyExistsError`` on a reused id."""
        return self._ctx.store.create(request)

    # ------------------------------------------------------------------
    # Recombine
    # ------------------------------------------------------------------

    async def rebuild(self, request: UnsignedRequest) -> tuple[bytes, bytes]:
        """Deterministically rebuild ``(digest, unsigned_blob)`` from stored args.

        ``unsigned_blob`` is empty for account-ledger kinds.
        """
        args = request.args
        if isinstance(args, (TransferArgs, ContractCallArgs)):
            return evm.signing_hash(args.to_tx_dict()), b""
        codec = self._codec()
        if isinstance(args, ExportArgs):
            unsigned = await codec.build_export_tx(args)
        else:
            unsigned = await codec.build_import_tx(args)
        return sha256(unsigned), unsigned

    async def recombine(
        self, request: UnsignedRequest, response: SignedResponse
    ) -> SignedTransaction:
        """Attach the external signature to the rebuilt transaction.

        Raises:
            InvalidSignatureError: If the signature cannot be parsed or recovered.
            RebuildMismatchError: If the rebuilt digest differs from the stored one.
            SignatureMismatchError: If the signer is not the context's key.
        """
        if response.request_id != request.request_id:
            raise SignatureMismatchError(
                f"response {response.request_id!r} does not belong to "
                f"request {request.request_id!r}"
            )
        signature = Signature.from_hex(response.signature)
        digest, unsigned = await self.rebuild(request)
        if digest != request.message_hash:
            raise RebuildMismatchError(
                f"request {request.request_id}: rebuilt digest {digest.hex()} != {request.message}"
            )

        recovered = recover_from_digest(digest, signature)
        if not equal(recovered, self._ctx.public_key):
            raise SignatureMismatchError(
                f"request {request.request_id} was signed by a different key"
            )

        if isinstance(request.args, (TransferArgs, ContractCallArgs)):
            raw = evm.encode_signed(request.args.to_tx_dict(), signature)
        else:
            raw = self._codec().sign_with_raw_signature(unsigned, signature)
        return SignedTransaction(request_id=request.request_id, kind=request.kind, raw=raw)

    async def broadcast(self, signed: SignedTransaction) -> str:
        """Submit a recombined transaction and return the ledger's id for it."""
        if signed.kind.is_atomic:
            return await self._ctx.ledger.issue_tx(signed.raw)
        return await self._ctx.ledger.send_raw_transaction(signed.raw)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _evm_request(
        self, request_id: str, kind: TxKind, args: TransferArgs | ContractCallArgs
    ) -> UnsignedRequest:
        digest = evm.signing_hash(args.to_tx_dict())
        logger.debug("Built %s request %s (nonce %d)", kind, request_id, args.nonce)
        return UnsignedRequest(request_id=request_id, kind=kind, args=args, message=digest.hex())

    def _atomic_request(
        self,
        request_id: str,
        kind: TxKind,
        args: ExportArgs | ImportArgs,
        unsigned: bytes,
    ) -> UnsignedRequest:
        logger.debug("Built %s request %s (fee %d)", kind, request_id, args.fee)
        return UnsignedRequest(
            request_id=request_id,
            kind=kind,
            args=args,
            message=sha256(unsigned).hex(),
            used_fee=args.fee,
            unsigned_tx=unsigned.hex(),
        )

    def _codec(self) -> AtomicTxCodec:
        if self._ctx.atomic is None:
            msg = "Atomic transactions require a ledger SDK codec in the context"
            raise RuntimeError(msg)
        return self._ctx.atomic
