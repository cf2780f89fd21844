"""Chain services — ledger JSON-RPC client and finalization waiter."""

from airgap_tx.chain.client import JsonRpcLedgerClient
from airgap_tx.chain.finalize import FinalizationWaiter

__all__ = ["FinalizationWaiter", "JsonRpcLedgerClient"]
