"""Signing workflow — create signing requests, then send signed results.

Implements the detached-signing lifecycle:
1. ``create_*_request`` — build the unsigned transaction, persist it, and
   return the base64 digest to hand to the custody service
2. ``send_signed`` — load the request and the custody service's signature,
   recombine, broadcast, and wait for the sender's nonce to advance
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from airgap_tx.chain.finalize import FinalizationWaiter
from airgap_tx.errors.definitions import AlreadyExistsError
from airgap_tx.tx.assembler import TxAssembler
from airgap_tx.tx.models import BroadcastResult, TxKind

if TYPE_CHECKING:
    from airgap_tx.context import AirgapContext
    from airgap_tx.tx.models import UnsignedRequest

logger = logging.getLogger(__name__)


class SigningWorkflow:
    """End-to-end detached signing for the account held in *ctx*."""

    def __init__(self, ctx: AirgapContext) -> None:
        self._ctx = ctx
        self._assembler = TxAssembler(ctx)
        self._waiter = FinalizationWaiter.from_config(
            ctx.ledger, ctx.config.finalize, sleep=ctx.sleep
        )

    @property
    def assembler(self) -> TxAssembler:
        return self._assembler

    @property
    def waiter(self) -> FinalizationWaiter:
        return self._waiter

    # ------------------------------------------------------------------
    # Request creation
    # ------------------------------------------------------------------

    async def create_transfer_request(
        self, request_id: str, to: str, amount: int, *, nonce: int | None = None
    ) -> str:
        self._ensure_new(request_id)
        request = await self._assembler.build_transfer(request_id, to, amount, nonce=nonce)
        return self._persist(request)

    async def create_opt_out_request(self, request_id: str, *, nonce: int | None = None) -> str:
        self._ensure_new(request_id)
        request = await self._assembler.build_opt_out(request_id, nonce=nonce)
        return self._persist(request)

    async def create_export_request(
        self, request_id: str, amount: int, *, fee: int | None = None
    ) -> str:
        self._ensure_new(request_id)
        request = await self._assembler.build_export(request_id, amount, fee=fee)
        return self._persist(request)

    async def create_import_request(self, request_id: str, *, fee: int | None = None) -> str:
        self._ensure_new(request_id)
        request = await self._assembler.build_import(request_id, fee=fee)
        return self._persist(request)

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send_signed(self, request_id: str, *, confirmations: bool = False) -> BroadcastResult:
        """Recombine, broadcast, and finalize a signed request.

        Imports do not consume an account-ledger nonce, so they return as
        soon as the node accepts them.

        Args:
            request_id: Id used when the request was created.
            confirmations: Also wait for extra blocks and re-check the nonce.
        """
        request = self._ctx.store.get_unsigned(request_id)
        response = self._ctx.store.get_signed(request_id)
        signed = await self._assembler.recombine(request, response)

        if signed.kind is TxKind.IMPORT:
            tx_id = await self._assembler.broadcast(signed)
        else:
            wait = self._waiter.wait_with_confirmations if confirmations else self._waiter.wait
            tx_id = await wait(
                self._ctx.account_address, lambda: self._assembler.broadcast(signed)
            )

        logger.info("Request %s finalized as %s", request_id, tx_id)
        return BroadcastResult(tx_id=tx_id, used_fee=request.used_fee)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_new(self, request_id: str) -> None:
        # Fail before touching the network; store.create re-checks atomically.
        if self._ctx.store.exists(request_id):
            raise AlreadyExistsError(f"request {request_id} already exists")

    def _persist(self, request: UnsignedRequest) -> str:
        self._assembler.persist(request)
        return request.signer_digest
