"""
Validator - Transaction validity rules and batch acceptance.

Validity Rules:
--------------
A transaction is valid against a UTXO pool when all of these hold:

1. Every output claimed by an input is in the pool
2. Every input's signature verifies against the claimed output's owner
3. No output is claimed more than once by the transaction
4. Every output value is non-negative
5. sum(input values) >= sum(output values)

The rules are pure predicates over (pool, tx, verifier), evaluated in
order and short-circuited on the first failure. None of them mutates the
pool, so the order only affects which failure gets reported. A transaction
whose fields do not fit their byte encoding is rejected before any rule
runs.

Batch Acceptance:
----------------
A block carries an unordered set of transactions. accept_batch scans the
not-yet-accepted transactions repeatedly, validating each one against a
working copy of the pool from which every output spent by an already
accepted transaction has been removed. Scanning stops after a pass that
accepts nothing.

Outputs created inside the batch are only credited once the fixpoint is
reached, so a transaction can never spend an output produced by another
transaction of the same batch. Worst case is O(n^2) validations.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Sequence, Set, Tuple

from forkchain.crypto import verify_signature, short_hex
from forkchain.core.state.utxo import UTXO, UTXOPool
from forkchain.core.state.transaction import Transaction
from forkchain.utils.logger import get_logger

logger = get_logger("validator")

# (owner public key, message hash, signature) -> bool
Verifier = Callable[[bytes, bytes, bytes], bool]


# =============================================================================
# Validity Rules
# =============================================================================


def claimed_outputs_exist(pool: UTXOPool, tx: Transaction, verifier: Verifier) -> bool:
    return all(pool.contains(inp.utxo) for inp in tx.inputs)


def signatures_valid(pool: UTXOPool, tx: Transaction, verifier: Verifier) -> bool:
    for i, inp in enumerate(tx.inputs):
        output = pool.get(inp.utxo)
        if output is None:
            return False
        if not verifier(output.owner, tx.signing_hash(i), inp.signature):
            return False
    return True


def no_output_claimed_twice(pool: UTXOPool, tx: Transaction, verifier: Verifier) -> bool:
    claimed: Set[UTXO] = set()
    for inp in tx.inputs:
        if inp.utxo in claimed:
            return False
        claimed.add(inp.utxo)
    return True


def outputs_non_negative(pool: UTXOPool, tx: Transaction, verifier: Verifier) -> bool:
    return all(out.value >= 0 for out in tx.outputs)


def inputs_cover_outputs(pool: UTXOPool, tx: Transaction, verifier: Verifier) -> bool:
    input_sum = 0
    for inp in tx.inputs:
        output = pool.get(inp.utxo)
        if output is None:
            return False
        input_sum += output.value
    return input_sum >= tx.total_output_value()


VALIDITY_RULES: Tuple[Tuple[str, Callable[[UTXOPool, Transaction, Verifier], bool]], ...] = (
    ("Claimed output not in UTXO pool", claimed_outputs_exist),
    ("Invalid input signature", signatures_valid),
    ("Output claimed more than once", no_output_claimed_twice),
    ("Negative output value", outputs_non_negative),
    ("Outputs exceed inputs", inputs_cover_outputs),
)


def check_transaction(
    pool: UTXOPool,
    tx: Transaction,
    verifier: Verifier = verify_signature,
) -> Tuple[bool, str]:
    """
    Validate a transaction against a UTXO pool.
    
    Args:
        pool: Unspent outputs visible to the transaction
        tx: Transaction to validate
        verifier: Signature verification capability
        
    Returns:
        (is_valid, description of the first failed rule)
    """
    # The rules hash the transaction, which needs every field encodable
    encodable, error = tx.validate_encoding()
    if not encodable:
        return False, f"Unencodable transaction: {error}"
    
    for description, rule in VALIDITY_RULES:
        if not rule(pool, tx, verifier):
            return False, description
    return True, ""


def is_valid_tx(
    pool: UTXOPool,
    tx: Transaction,
    verifier: Verifier = verify_signature,
) -> bool:
    valid, _ = check_transaction(pool, tx, verifier)
    return valid


# =============================================================================
# Batch Acceptance
# =============================================================================


@dataclass
class BatchResult:
    """
    Outcome of accept_batch.
    
    accepted is in discovery order, which need not match the order the
    transactions were proposed in.
    """
    accepted: List[Transaction] = field(default_factory=list)
    rejected: List[Transaction] = field(default_factory=list)
    utxo_pool: UTXOPool = field(default_factory=UTXOPool)
    
    @property
    def all_accepted(self) -> bool:
        return not self.rejected


def _spend_inputs(pool: UTXOPool, tx: Transaction) -> None:
    for inp in tx.inputs:
        pool.remove(inp.utxo)


def credit_outputs(pool: UTXOPool, tx: Transaction) -> None:
    """Credit tx's outputs under its recomputed identity hash."""
    tx.finalize()
    for index, output in enumerate(tx.outputs):
        pool.put(UTXO(tx.tx_hash, index), output)


def accept_batch(
    pool: UTXOPool,
    txs: Sequence[Transaction],
    verifier: Verifier = verify_signature,
) -> BatchResult:
    """
    Accept the largest mutually valid subset of an unordered batch.
    
    The caller's pool is never mutated; the returned pool is a new
    snapshot with the accepted inputs spent and their outputs credited.
    
    Args:
        pool: Snapshot the batch is validated against
        txs: Proposed transactions, in any order
        verifier: Signature verification capability
        
    Returns:
        BatchResult
    """
    working = pool.copy()
    accepted: List[Transaction] = []
    pending = list(txs)
    
    # A pass without progress ends the loop, so len(txs) + 1 passes is enough
    for _ in range(len(pending) + 1):
        still_pending = []
        for tx in pending:
            if is_valid_tx(working, tx, verifier):
                _spend_inputs(working, tx)
                accepted.append(tx)
            else:
                still_pending.append(tx)
        
        progressed = len(still_pending) < len(pending)
        pending = still_pending
        if not progressed or not pending:
            break
    
    for tx in accepted:
        credit_outputs(working, tx)
    
    if pending:
        logger.debug(
            f"Batch: {len(accepted)} accepted, {len(pending)} rejected "
            f"(first rejected {short_hex(pending[0].tx_hash)})"
        )
    
    return BatchResult(accepted=accepted, rejected=pending, utxo_pool=working)


# =============================================================================
# Stateful Handler
# =============================================================================


class TxHandler:
    """
    Validates successive batches against a privately owned UTXO pool.
    
    Each call to handle_txs commits the accepted transactions to the
    handler's pool, so later batches see their effects.
    """
    
    def __init__(self, utxo_pool: UTXOPool, verifier: Verifier = verify_signature):
        """
        Args:
            utxo_pool: Starting pool (copied, never mutated)
            verifier: Signature verification capability
        """
        self._pool = utxo_pool.copy()
        self.verifier = verifier
    
    def is_valid_tx(self, tx: Transaction) -> bool:
        return is_valid_tx(self._pool, tx, self.verifier)
    
    def handle_txs(self, possible_txs: Sequence[Transaction]) -> List[Transaction]:
        """
        Accept a mutually valid subset of possible_txs and apply it.
        
        Returns:
            Accepted transactions, in discovery order
        """
        result = accept_batch(self._pool, possible_txs, self.verifier)
        self._pool = result.utxo_pool
        return result.accepted
    
    @property
    def utxo_pool(self) -> UTXOPool:
        """Copy of the handler's current pool."""
        return self._pool.copy()
