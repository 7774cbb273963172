"""UTXO state and transaction validation"""
from forkchain.core.state.utxo import UTXO, TxOutput, UTXOPool
from forkchain.core.state.transaction import (
    Transaction,
    TxInput,
    create_transfer,
    create_coinbase,
)
from forkchain.core.state.validator import (
    VALIDITY_RULES,
    BatchResult,
    TxHandler,
    accept_batch,
    check_transaction,
    is_valid_tx,
)

__all__ = [
    "UTXO",
    "TxOutput",
    "UTXOPool",
    "Transaction",
    "TxInput",
    "create_transfer",
    "create_coinbase",
    "VALIDITY_RULES",
    "BatchResult",
    "TxHandler",
    "accept_batch",
    "check_transaction",
    "is_valid_tx",
]
