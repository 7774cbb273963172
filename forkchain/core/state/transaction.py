"""
Transaction - State transition in the ForkChain ledger.

Conceptual Background:
---------------------
A Transaction consumes existing outputs (inputs) and creates new ones
(outputs). Value may be destroyed but never created:

    sum(inputs.value) >= sum(outputs.value)

and the difference is an implicit fee.

Each input references one unspent output and carries a signature by that
output's owner. The signed payload for input i covers the input's own
reference plus every output, so a signature cannot be lifted onto a
transaction that pays someone else.

Transaction Types:
-----------------
1. Transfer: Spends outputs owned by the signers
2. Coinbase: No inputs, creates the block reward (protocol rule only)

Identity:
--------
tx_hash = SHA256(inputs || outputs || coinbase_data)

Signatures are excluded from the identity hash so that signing does not
change what the inputs sign.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from forkchain.crypto import sha256, sign, verify, short_hex
from forkchain.core.state.utxo import UTXO, TxOutput
from forkchain.utils.validation import (
    MAX_ENCODED_INDEX,
    validate_amount,
    validate_bytes,
    validate_hash,
    validate_integer,
    validate_output_index,
    validate_public_key,
    validate_signature,
)


# =============================================================================
# Input Reference
# =============================================================================


@dataclass
class TxInput:
    """
    A transaction input - reference to an output being spent.
    
    Attributes:
        prev_tx_hash: Transaction that created the output
        output_index: Index in that transaction's outputs
        signature: Signature by the output's owner (64 bytes once signed)
    """
    prev_tx_hash: bytes
    output_index: int
    signature: bytes = b""
    
    @property
    def utxo(self) -> UTXO:
        """The output reference this input consumes."""
        return UTXO(self.prev_tx_hash, self.output_index)
    
    def reference_bytes(self) -> bytes:
        return self.prev_tx_hash + self.output_index.to_bytes(4, byteorder="big")


# =============================================================================
# Transaction
# =============================================================================


@dataclass
class Transaction:
    """
    A transfer consuming existing outputs and producing new ones.
    
    Attributes:
        inputs: Ordered inputs being spent
        outputs: Ordered outputs being created
        coinbase_data: Free-form tag hashed into coinbase identities
        tx_hash: Hash of the transaction (computed by finalize)
    """
    inputs: List[TxInput] = field(default_factory=list)
    outputs: List[TxOutput] = field(default_factory=list)
    coinbase_data: bytes = b""
    tx_hash: bytes = field(default=b"")
    
    # =========================================================================
    # Building
    # =========================================================================
    
    def add_input(self, prev_tx_hash: bytes, output_index: int) -> None:
        self.inputs.append(TxInput(prev_tx_hash, output_index))
    
    def add_output(self, value: int, owner: bytes) -> None:
        self.outputs.append(TxOutput(value, owner))
    
    @property
    def is_coinbase(self) -> bool:
        return len(self.inputs) == 0
    
    # =========================================================================
    # Transaction Hash
    # =========================================================================
    
    def compute_content_bytes(self) -> bytes:
        """
        Canonical byte representation for hashing.
        
        Format: num_inputs(4) || input refs || num_outputs(4) || outputs || coinbase_data
        """
        parts = [len(self.inputs).to_bytes(4, byteorder="big")]
        for inp in self.inputs:
            parts.append(inp.reference_bytes())
        
        parts.append(len(self.outputs).to_bytes(4, byteorder="big"))
        for out in self.outputs:
            parts.append(out.to_bytes())
        
        parts.append(self.coinbase_data)
        return b"".join(parts)
    
    def compute_tx_hash(self) -> bytes:
        return sha256(self.compute_content_bytes())
    
    def finalize(self) -> None:
        """Compute and set the transaction hash."""
        self.tx_hash = self.compute_tx_hash()
    
    # =========================================================================
    # Signing
    # =========================================================================
    
    def raw_data_to_sign(self, input_index: int) -> bytes:
        """
        Payload authorised by the signer of one input.
        
        Format: input ref || outputs
        """
        if input_index >= len(self.inputs):
            raise IndexError(f"Input index {input_index} out of range")
        
        parts = [self.inputs[input_index].reference_bytes()]
        for out in self.outputs:
            parts.append(out.to_bytes())
        return b"".join(parts)
    
    def signing_hash(self, input_index: int) -> bytes:
        """32-byte digest of raw_data_to_sign, the message actually signed."""
        return sha256(self.raw_data_to_sign(input_index))
    
    def sign_input(self, input_index: int, private_key: bytes) -> None:
        """
        Sign a specific input.
        
        Args:
            input_index: Which input to sign
            private_key: Private key of the referenced output's owner
        """
        signature = sign(self.signing_hash(input_index), private_key)
        self.inputs[input_index].signature = signature
    
    def verify_input_signature(self, input_index: int, public_key: bytes) -> bool:
        if input_index >= len(self.inputs):
            return False
        return verify(
            self.signing_hash(input_index),
            self.inputs[input_index].signature,
            public_key,
        )
    
    # =========================================================================
    # Validation
    # =========================================================================
    
    def validate_encoding(self) -> Tuple[bool, str]:
        """
        Check that every field fits its canonical byte encoding.
        
        Hashing or signing a transaction that fails this check raises, so
        transactions from outside the process are checked first.
        """
        for i, inp in enumerate(self.inputs):
            for ok, error in (
                validate_bytes(inp.prev_tx_hash, f"Input {i}: prev_tx_hash"),
                validate_integer(
                    inp.output_index, f"Input {i}: output_index",
                    min_val=0, max_val=MAX_ENCODED_INDEX,
                ),
                validate_bytes(inp.signature, f"Input {i}: signature"),
            ):
                if not ok:
                    return False, error
        
        for i, out in enumerate(self.outputs):
            for ok, error in (
                validate_amount(out.value, f"Output {i}: value"),
                validate_bytes(out.owner, f"Output {i}: owner"),
            ):
                if not ok:
                    return False, error
        
        return validate_bytes(self.coinbase_data, "coinbase_data")
    
    def validate_structure(self) -> Tuple[bool, str]:
        """
        Validate field shapes (not state).
        
        Checks:
        - Every field is encodable
        - Has at least one output
        - Input references and signatures have correct lengths
        - Output owners are public keys
        """
        valid, error = self.validate_encoding()
        if not valid:
            return False, error
        
        if len(self.outputs) == 0:
            return False, "Must have at least one output"
        
        for i, inp in enumerate(self.inputs):
            for ok, error in (
                validate_hash(inp.prev_tx_hash, f"Input {i}: prev_tx_hash"),
                validate_output_index(inp.output_index, f"Input {i}: output_index"),
                validate_signature(inp.signature, f"Input {i}: signature"),
            ):
                if not ok:
                    return False, error
        
        for i, out in enumerate(self.outputs):
            valid, error = validate_public_key(out.owner, f"Output {i}: owner")
            if not valid:
                return False, error
        
        return True, ""
    
    # =========================================================================
    # Utility
    # =========================================================================
    
    def total_output_value(self) -> int:
        """Sum of all output values."""
        return sum(out.value for out in self.outputs)
    
    def __repr__(self) -> str:
        tx_id = short_hex(self.tx_hash) if self.tx_hash else "unfinalized"
        return f"Transaction(id={tx_id}, inputs={len(self.inputs)}, outputs={len(self.outputs)})"


# =============================================================================
# Factory Functions
# =============================================================================


def create_transfer(
    inputs: List[Tuple[UTXO, bytes]],
    recipients: List[Tuple[bytes, int]],
) -> Transaction:
    """
    Create a signed transfer transaction.
    
    Args:
        inputs: List of (output reference, owner private key) tuples
        recipients: List of (public key, value) tuples
        
    Returns:
        Signed, finalized Transaction
        
    Note: Whatever the inputs hold beyond the recipients' total is the fee.
    """
    tx = Transaction()
    for utxo, _ in inputs:
        tx.add_input(utxo.tx_hash, utxo.output_index)
    for public_key, value in recipients:
        tx.add_output(value, public_key)
    
    for i, (_, private_key) in enumerate(inputs):
        tx.sign_input(i, private_key)
    
    tx.finalize()
    return tx


def create_coinbase(
    recipient: bytes,
    value: int,
    coinbase_data: Optional[bytes] = None,
) -> Transaction:
    """
    Create a coinbase transaction (no inputs, creates new tokens).
    
    Args:
        recipient: Public key receiving the reward
        value: Reward amount
        coinbase_data: Tag that makes the hash unique per block
            (the parent block hash)
        
    Returns:
        Finalized coinbase Transaction
    """
    tx = Transaction(
        outputs=[TxOutput(value=value, owner=recipient)],
        coinbase_data=coinbase_data or b"",
    )
    tx.finalize()
    return tx
