"""
E-Cheque Crypto Hashing Module

Keccak-256 is the only hash in the wire format: it backs the canonical
redemption and sign-over hashes and the personal_sign digest.
"""

from typing import Union

from eth_utils import keccak as _keccak, decode_hex


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or 0x-prefixed hex string

    Returns:
        32-byte hash
    """
    if isinstance(data, str):
        data = decode_hex(data)
    return _keccak(data)


def keccak256_hex(data: Union[bytes, str]) -> str:
    """
    Compute Keccak-256 hash and return as hex string.

    Args:
        data: Input bytes or hex string

    Returns:
        Hex string with 0x prefix
    """
    return '0x' + keccak256(data).hex()
