"""
UTXO - Unspent Transaction Outputs for ForkChain.

Conceptual Background:
---------------------
A UTXO is a discrete unit of value that can be spent exactly once. The
ledger state is not a table of balances but the set of outputs nobody has
spent yet.

An output is identified by the transaction that produced it and its
position in that transaction's output list:

    utxo = (tx_hash, output_index)

UTXO Pool:
---------
The UTXOPool maps each unspent reference to the output it points at. Every
tracked branch of the fork tree owns its own pool, so a pool must be
cheap to copy and a copy must never alias its source. Outputs are
immutable, which makes a new dict over the same output objects a true
value copy.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from forkchain.crypto import keccak256, short_hex


# =============================================================================
# Output Reference
# =============================================================================


@dataclass(frozen=True)
class UTXO:
    """
    Reference to a spendable output.
    
    Attributes:
        tx_hash: Hash of the transaction that created the output
        output_index: Index within that transaction's outputs
    """
    tx_hash: bytes
    output_index: int
    
    def __repr__(self) -> str:
        return f"UTXO(tx={short_hex(self.tx_hash)}, idx={self.output_index})"


# =============================================================================
# Output
# =============================================================================


@dataclass(frozen=True)
class TxOutput:
    """
    A value assigned to an owner.
    
    Values are not range-checked here: a negative value is a ledger rule
    violation and is reported by the validator, not by the constructor.
    
    Attributes:
        value: Token amount
        owner: 64-byte public key of the recipient
    """
    value: int
    owner: bytes
    
    def to_bytes(self) -> bytes:
        """
        Canonical encoding for hashing.
        
        Format: value(8, signed) || owner
        """
        return self.value.to_bytes(8, byteorder="big", signed=True) + self.owner
    
    def __repr__(self) -> str:
        owner = "0x" + keccak256(self.owner)[-20:].hex()[:8] + "..."
        return f"TxOutput(value={self.value}, owner={owner})"


# =============================================================================
# UTXO Pool
# =============================================================================


class UTXOPool:
    """
    Mutable mapping from output reference to output.
    
    No ordering is guaranteed when iterating.
    """
    
    def __init__(self, other: Optional["UTXOPool"] = None):
        """
        Args:
            other: Pool to copy from. None = empty pool.
        """
        self._outputs: Dict[UTXO, TxOutput] = dict(other._outputs) if other else {}
    
    def contains(self, utxo: UTXO) -> bool:
        return utxo in self._outputs
    
    def get(self, utxo: UTXO) -> Optional[TxOutput]:
        """Get the output for a reference, or None if it is not unspent."""
        return self._outputs.get(utxo)
    
    def put(self, utxo: UTXO, output: TxOutput) -> None:
        self._outputs[utxo] = output
    
    def remove(self, utxo: UTXO) -> None:
        """Remove a reference. Removing an absent reference is a no-op."""
        self._outputs.pop(utxo, None)
    
    def copy(self) -> "UTXOPool":
        """Independent copy; mutating it never affects this pool."""
        return UTXOPool(self)
    
    def all_utxos(self) -> List[UTXO]:
        return list(self._outputs)
    
    def total_value(self) -> int:
        """Sum of all unspent output values."""
        return sum(out.value for out in self._outputs.values())
    
    def get_balance(self, owner: bytes) -> int:
        """Total unspent value held by a public key."""
        return sum(
            out.value
            for out in self._outputs.values()
            if out.owner == owner
        )
    
    def __contains__(self, utxo: object) -> bool:
        return utxo in self._outputs
    
    def __iter__(self) -> Iterator[UTXO]:
        return iter(list(self._outputs))
    
    def __len__(self) -> int:
        return len(self._outputs)
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UTXOPool):
            return NotImplemented
        return self._outputs == other._outputs
    
    def __repr__(self) -> str:
        return f"UTXOPool(utxos={len(self._outputs)}, value={self.total_value()})"
