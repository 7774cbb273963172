"""
Input Validation - structural checks for externally supplied data.

Transactions reaching the memory pool come from outside the process, so
their field shapes are checked before anything hashes or signs them:
- Wrong-length keys, hashes and signatures
- Out-of-range integers
"""

from typing import Any, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

PUBLIC_KEY_SIZE = 64
SIGNATURE_SIZE = 64
HASH_SIZE = 32

MAX_OUTPUT_INDEX = 255
MAX_ENCODED_INDEX = 2**32 - 1  # 4-byte encoding
MIN_AMOUNT = -(2**63)  # signed 8-byte encoding
MAX_AMOUNT = 2**63 - 1


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.
    
    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length
        
    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"
    
    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"
    
    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"
    
    return True, ""


def validate_public_key(public_key: Any, name: str = "public_key") -> Tuple[bool, str]:
    """Validate a public key."""
    return validate_bytes(public_key, name, expected_length=PUBLIC_KEY_SIZE)


def validate_signature(signature: Any, name: str = "signature") -> Tuple[bool, str]:
    """Validate a signature."""
    return validate_bytes(signature, name, expected_length=SIGNATURE_SIZE)


def validate_hash(hash_value: Any, name: str = "hash") -> Tuple[bool, str]:
    """Validate a hash value."""
    return validate_bytes(hash_value, name, expected_length=HASH_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.
    
    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value (None = unbounded)
        max_val: Maximum allowed value (None = unbounded)
        
    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass, but never a meaningful amount or index
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"
    
    if min_val is not None and value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"
    
    if max_val is not None and value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"
    
    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """
    Validate a token amount.
    
    Only the type and the signed 8-byte range are checked here. Negative
    amounts are a ledger rule violation, reported by the transaction
    validator.
    """
    return validate_integer(amount, name, min_val=MIN_AMOUNT, max_val=MAX_AMOUNT)


def validate_output_index(index: Any, name: str = "output_index") -> Tuple[bool, str]:
    """Validate an output index."""
    return validate_integer(index, name, min_val=0, max_val=MAX_OUTPUT_INDEX)
