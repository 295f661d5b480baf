"""
E-Cheque Crypto Encoding Module

Solidity-compatible tight packing (abi.encodePacked) for the canonical hash
inputs. Any independent implementation that packs the same typed tuple gets
the same bytes.
"""

from typing import Any, Sequence

from eth_abi.packed import encode_packed
from eth_abi.exceptions import EncodingError

from ..exceptions import ValidationError


def pack(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """
    Tightly pack *values* according to their ABI *types*.

    Args:
        types: ABI type strings, e.g. ('bytes32', 'address', 'uint256')
        values: Python values matching the types

    Returns:
        Packed bytes

    Raises:
        ValidationError: If a value does not fit its declared type
    """
    if len(types) != len(values):
        raise ValidationError(f"Expected {len(types)} values, got {len(values)}")
    try:
        return encode_packed(list(types), list(values))
    except EncodingError as e:
        raise ValidationError(f"Cannot encode {list(types)}: {e}") from e
