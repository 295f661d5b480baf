"""
E-Cheque Crypto Address Module

Identities on the ledger are EIP-55 checksummed 20-byte addresses. Every
address that enters the ledger goes through normalize_address() so that map
keys and hash inputs never differ by letter case.
"""

from typing import Union

from eth_utils import is_address, is_checksum_address, to_checksum_address

from ..exceptions import InvalidAddressError


def normalize_address(address: Union[str, bytes]) -> str:
    """
    Normalize an identity to its checksummed form.

    Args:
        address: 0x-prefixed hex string (any casing) or 20 raw bytes

    Returns:
        Checksum address with 0x prefix

    Raises:
        InvalidAddressError: If the input is not a 20-byte address
    """
    if isinstance(address, bytes):
        if len(address) != 20:
            raise InvalidAddressError(f"Address must be 20 bytes, got {len(address)}")
        return to_checksum_address(address)

    if not isinstance(address, str) or not address.startswith(('0x', '0X')):
        raise InvalidAddressError(f"Invalid address: {address!r}")

    # Mixed-case input must carry a valid checksum; all-lower/all-upper is accepted
    body = address[2:]
    if body != body.lower() and body != body.upper():
        if not is_checksum_address("0x" + body):
            raise InvalidAddressError(f"Bad address checksum: {address}")
    elif not is_address(address.lower()):
        raise InvalidAddressError(f"Invalid address: {address}")

    return to_checksum_address(address.lower())


def is_valid_address(address) -> bool:
    """Check whether *address* can be normalized."""
    try:
        normalize_address(address)
        return True
    except InvalidAddressError:
        return False
