"""
E-Cheque Crypto Module

Cryptographic primitives for the ledger:
- secp256k1 keys and the fixed-size (r, s, v) signature structure
- Keccak-256 hashing
- Solidity tight packing for canonical hash inputs
- personal_sign signing and signer recovery
- Address normalization
"""

from .keys import PrivateKey, Signature, generate_keypair
from .signing import sign_hash, recover_signer, personal_sign_digest
from .hashing import keccak256, keccak256_hex
from .encoding import pack
from .address import normalize_address, is_valid_address

__all__ = [
    # Keys
    "PrivateKey",
    "Signature",
    "generate_keypair",
    # Signing
    "sign_hash",
    "recover_signer",
    "personal_sign_digest",
    # Hashing
    "keccak256",
    "keccak256_hex",
    # Encoding
    "pack",
    # Address
    "normalize_address",
    "is_valid_address",
]
