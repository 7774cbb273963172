"""
Transaction pool for ForkChain.

Stores externally submitted transactions until a block producer picks
them up. The pool only checks field shapes; ledger validity is decided
against a branch snapshot when a block is assembled or submitted.
"""

from typing import Dict, List, Optional, Tuple

from forkchain.crypto import short_hex
from forkchain.core.state.transaction import Transaction
from forkchain.utils.logger import get_logger

logger = get_logger("mempool")


class TransactionPool:
    """
    Pending transaction pool.
    
    Transactions are returned in the order they were added.
    """
    
    def __init__(self, max_size: int = 10000):
        self.max_size = max_size
        self.pending: Dict[bytes, Transaction] = {}  # tx_hash -> Transaction
    
    def add(self, tx: Transaction) -> Tuple[bool, str]:
        """Add a transaction to the pool, keyed by its recomputed hash."""
        valid, error = tx.validate_structure()
        if not valid:
            return False, f"Structure: {error}"
        
        tx.finalize()
        if tx.tx_hash in self.pending:
            return False, "Transaction already in pool"
        
        if len(self.pending) >= self.max_size:
            return False, "Transaction pool full"
        
        self.pending[tx.tx_hash] = tx
        logger.debug(f"Pooled tx {short_hex(tx.tx_hash)} ({len(self.pending)} pending)")
        return True, ""
    
    def remove(self, tx_hash: bytes) -> None:
        """Remove a transaction from the pool."""
        self.pending.pop(tx_hash, None)
    
    def get(self, tx_hash: bytes) -> Optional[Transaction]:
        return self.pending.get(tx_hash)
    
    def contains(self, tx_hash: bytes) -> bool:
        return tx_hash in self.pending
    
    def get_transactions(self, max_count: Optional[int] = None) -> List[Transaction]:
        """Get pending transactions in arrival order."""
        txs = list(self.pending.values())
        return txs if max_count is None else txs[:max_count]
    
    def clear(self) -> None:
        """Clear all pending transactions."""
        self.pending.clear()
    
    def __len__(self) -> int:
        return len(self.pending)
