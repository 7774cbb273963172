"""
ForkChain

The validation and fork-management core of a minimal UTXO ledger:
- Transaction validation against per-branch unspent-output snapshots
- Fixpoint batch acceptance of unordered transactions
- A bounded fork tree that tracks competing branches and prunes old ones
"""

__version__ = "0.1.0"
