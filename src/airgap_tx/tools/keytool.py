#!/usr/bin/env python3
"""Airgap key tool — inspect keys and drive detached signing from a shell.

    # Show every address encoding of a public key
    python -m airgap_tx.tools.keytool addresses <pubkey> [network]

    # Recover the signer of a personal message signature
    python -m airgap_tx.tools.keytool recover <message> <signature>

    # Current nonce of an account address
    python -m airgap_tx.tools.keytool nonce <address>

    # Create an unsigned transfer / opt-out request for the custody service
    python -m airgap_tx.tools.keytool transfer <pubkey> <request_id> <to> <amount_nano>
    python -m airgap_tx.tools.keytool optout <pubkey> <request_id>

    # Recombine the returned signature, broadcast, and wait for finalization
    python -m airgap_tx.tools.keytool send <pubkey> <request_id>

Network and node settings come from ``AIRGAP_*`` environment variables or
the YAML file named by ``AIRGAP_CONFIG_PATH``.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from airgap_tx.config.settings import AppConfig
from airgap_tx.errors.airgap_errors import AirgapError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from airgap_tx.workflow import SigningWorkflow

logger = logging.getLogger(__name__)


def _cmd_addresses(config: AppConfig, pubkey: str, network: str | None) -> None:
    from airgap_tx.keys.address import (
        public_key_to_account_address,
        public_key_to_utxo_address,
        with_chain_tag,
    )
    from airgap_tx.keys.codec import normalize, to_compressed

    name = network or config.network
    if name not in config.networks:
        known = ", ".join(sorted(config.networks))
        _usage(f"addresses <pubkey> [network]  (known networks: {known})")
    params = config.networks[name]
    utxo = public_key_to_utxo_address(params.hrp, pubkey)
    print(f"Uncompressed: 04{normalize(pubkey)}")
    print(f"Compressed:   {to_compressed(pubkey).hex()}")
    print(f"C-chain:      {public_key_to_account_address(pubkey)}")
    print(f"C-chain bech: {with_chain_tag('C', utxo)}")
    print(f"P-chain:      {with_chain_tag('P', utxo)}")


def _cmd_recover(message: str, signature: str) -> None:
    from airgap_tx.keys.address import public_key_to_account_address
    from airgap_tx.keys.recovery import recover_from_message

    pubkey = recover_from_message(message, signature)
    print(f"Public key: {pubkey.hex()}")
    print(f"Address:    {public_key_to_account_address(pubkey)}")


def _cmd_nonce(config: AppConfig, address: str) -> None:
    from airgap_tx.chain.client import JsonRpcLedgerClient

    async def _run() -> None:
        ledger = JsonRpcLedgerClient(config.ledger)
        await ledger.connect()
        try:
            print(f"Nonce: {await ledger.get_sequence_counter(address)}")
        finally:
            await ledger.close()

    asyncio.run(_run())


def _with_workflow(
    config: AppConfig, pubkey: str, step: Callable[[SigningWorkflow], Awaitable[None]]
) -> None:
    from airgap_tx.chain.client import JsonRpcLedgerClient
    from airgap_tx.context import AirgapContext
    from airgap_tx.workflow import SigningWorkflow

    async def _run() -> None:
        ledger = JsonRpcLedgerClient(config.ledger)
        await ledger.connect()
        try:
            ctx = AirgapContext.create(pubkey, config, ledger)
            await step(SigningWorkflow(ctx))
        finally:
            await ledger.close()

    asyncio.run(_run())


def _usage(text: str) -> None:
    print(f"Usage: keytool {text}")
    sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(__doc__)
        sys.exit(1)

    config = AppConfig()
    logging.basicConfig(
        level=config.log_level.value, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    cmd, rest = args[0].lower(), args[1:]

    async def _transfer(wf: SigningWorkflow) -> None:
        digest = await wf.create_transfer_request(rest[1], rest[2], int(rest[3]))
        print(f"Digest for signer: {digest}")

    async def _optout(wf: SigningWorkflow) -> None:
        print(f"Digest for signer: {await wf.create_opt_out_request(rest[1])}")

    async def _send(wf: SigningWorkflow) -> None:
        result = await wf.send_signed(rest[1])
        print(f"Transaction: {result.tx_id}")

    try:
        if cmd == "addresses":
            if not rest:
                _usage("addresses <pubkey> [network]")
            _cmd_addresses(config, rest[0], rest[1] if len(rest) > 1 else None)
        elif cmd == "recover":
            if len(rest) < 2:
                _usage("recover <message> <signature>")
            _cmd_recover(rest[0], rest[1])
        elif cmd == "nonce":
            if not rest:
                _usage("nonce <address>")
            _cmd_nonce(config, rest[0])
        elif cmd == "transfer":
            if len(rest) < 4 or not rest[3].isdigit():
                _usage("transfer <pubkey> <request_id> <to> <amount_nano>")
            _with_workflow(config, rest[0], _transfer)
        elif cmd == "optout":
            if len(rest) < 2:
                _usage("optout <pubkey> <request_id>")
            _with_workflow(config, rest[0], _optout)
        elif cmd == "send":
            if len(rest) < 2:
                _usage("send <pubkey> <request_id>")
            _with_workflow(config, rest[0], _send)
        else:
            print(f"Unknown command: {cmd}")
            print(__doc__)
            sys.exit(1)
    except AirgapError as exc:
        logger.error("%s (%s)", exc.message, exc.code)
        sys.exit(2)


if __name__ == "__main__":
    main()
