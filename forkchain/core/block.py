"""
Block - An atomic batch of transactions on top of a parent.

A block references its parent by hash (None only for genesis), carries an
ordered list of transactions and exactly one coinbase transaction paying
the block reward to its producer.

    block_hash = SHA256(prev_block_hash || coinbase.tx_hash || tx hashes)
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from forkchain.crypto import sha256, short_hex
from forkchain.core.config import config
from forkchain.core.state.transaction import Transaction, create_coinbase


@dataclass
class Block:
    """
    A block of transactions.
    
    Attributes:
        prev_block_hash: Parent block hash (None for genesis)
        coinbase: Reward transaction (no inputs)
        transactions: Ordered transactions spending existing outputs
        block_hash: Identity hash (computed by finalize)
    """
    prev_block_hash: Optional[bytes]
    coinbase: Transaction
    transactions: List[Transaction] = field(default_factory=list)
    block_hash: bytes = b""
    
    def add_transaction(self, tx: Transaction) -> None:
        self.transactions.append(tx)
    
    def compute_hash(self) -> bytes:
        """Compute block hash from recomputed transaction hashes."""
        parts = [self.prev_block_hash or bytes(32), self.coinbase.compute_tx_hash()]
        for tx in self.transactions:
            parts.append(tx.compute_tx_hash())
        return sha256(b"".join(parts))
    
    def finalize(self) -> None:
        """Set the hash of every transaction, then the block hash."""
        self.coinbase.finalize()
        for tx in self.transactions:
            tx.finalize()
        self.block_hash = self.compute_hash()
    
    def validate_encoding(self) -> Tuple[bool, str]:
        """
        Check that the parent reference and coinbase can be hashed.
        
        Transactions are checked separately, by validate_encoding on each.
        """
        if self.prev_block_hash is not None and not isinstance(self.prev_block_hash, bytes):
            return False, "prev_block_hash must be bytes"
        
        if not isinstance(self.coinbase, Transaction):
            return False, "Missing coinbase"
        
        valid, error = self.coinbase.validate_encoding()
        if not valid:
            return False, f"Coinbase: {error}"
        return True, ""
    
    @property
    def is_genesis(self) -> bool:
        return self.prev_block_hash is None
    
    def __repr__(self) -> str:
        return (
            f"Block(hash={short_hex(self.block_hash)}, "
            f"prev={short_hex(self.prev_block_hash or b'')}, txs={len(self.transactions)})"
        )


def create_block(
    prev_block_hash: Optional[bytes],
    producer: bytes,
    transactions: Optional[List[Transaction]] = None,
    reward: Optional[int] = None,
) -> Block:
    """
    Create a finalized block.
    
    Args:
        prev_block_hash: Parent block hash (None for genesis)
        producer: Public key receiving the coinbase reward
        transactions: Transactions to include
        reward: Coinbase value (defaults to the configured reward)
        
    Returns:
        Finalized Block
    """
    if reward is None:
        reward = config.coinbase_reward
    
    # The parent hash keeps coinbase identities distinct across blocks
    coinbase = create_coinbase(producer, reward, coinbase_data=prev_block_hash)
    
    block = Block(
        prev_block_hash=prev_block_hash,
        coinbase=coinbase,
        transactions=list(transactions or []),
    )
    block.finalize()
    return block


def create_genesis_block(
    producer: bytes,
    transactions: Optional[List[Transaction]] = None,
    reward: Optional[int] = None,
) -> Block:
    """Create the trusted root block of a chain."""
    return create_block(None, producer, transactions, reward)
