"""
E-Cheque Crypto Keys Module

secp256k1 key handling for the off-ledger signers and the fixed-size
signature structure the ledger decodes before any verification.
The ledger itself never holds private keys.
"""

import secrets
from typing import Tuple, Union

from eth_keys.datatypes import PrivateKey as EthPrivateKey
from eth_keys.datatypes import Signature as EthSignature
from eth_utils import decode_hex

from ..constants import SECP256K1_N
from ..exceptions import MalformedSignatureError, ValidationError


class PrivateKey:
    """
    secp256k1 private key used by payers and payees to sign off-ledger.

    Wraps eth-keys PrivateKey.
    """

    def __init__(self, key_bytes: bytes):
        """
        Initialize from raw 32-byte private key.

        Raises:
            ValidationError: If key bytes are invalid
        """
        if len(key_bytes) != 32:
            raise ValidationError(f"Private key must be 32 bytes, got {len(key_bytes)}")

        try:
            self._key = EthPrivateKey(key_bytes)
        except Exception as e:
            raise ValidationError(f"Invalid private key: {e}") from e

    @classmethod
    def from_hex(cls, hex_str: str) -> "PrivateKey":
        """Create from hex string (with or without 0x prefix)."""
        return cls(decode_hex(hex_str))

    @classmethod
    def generate(cls) -> "PrivateKey":
        """Generate a new random private key."""
        return cls(secrets.token_bytes(32))

    @property
    def address(self) -> str:
        """Checksummed identity derived from the public key."""
        return self._key.public_key.to_checksum_address()

    def to_bytes(self) -> bytes:
        return self._key.to_bytes()

    def to_hex(self, with_prefix: bool = True) -> str:
        hex_str = self._key.to_bytes().hex()
        return f"0x{hex_str}" if with_prefix else hex_str

    def sign_msg_hash(self, msg_hash: bytes) -> "Signature":
        """
        Sign a 32-byte digest as-is.

        Args:
            msg_hash: 32-byte hash to sign

        Returns:
            Signature instance
        """
        if len(msg_hash) != 32:
            raise ValidationError(f"Message hash must be 32 bytes, got {len(msg_hash)}")
        signature = self._key.sign_msg_hash(msg_hash)
        return Signature(signature.r, signature.s, signature.v)

    def __repr__(self) -> str:
        return f"PrivateKey({self.address})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PrivateKey):
            return False
        return self._key == other._key


class Signature:
    """
    ECDSA signature as two 256-bit components plus a recovery id.

    Every constructor range-checks its input, so an instance that exists is
    always safe to hand to public-key recovery.
    """

    __slots__ = ("r", "s", "v")

    def __init__(self, r: int, s: int, v: int):
        """
        Args:
            r: R component, 1 <= r < n
            s: S component, 1 <= s < n
            v: Recovery id (0/1, or 27/28 as produced by personal_sign)

        Raises:
            MalformedSignatureError: On any out-of-range component
        """
        if not isinstance(r, int) or not isinstance(s, int) or not isinstance(v, int):
            raise MalformedSignatureError("Signature components must be integers")
        if v in (27, 28):
            v -= 27
        if v not in (0, 1):
            raise MalformedSignatureError(f"Invalid recovery id: {v}")
        if not 0 < r < SECP256K1_N:
            raise MalformedSignatureError("Signature r component out of range")
        if not 0 < s < SECP256K1_N:
            raise MalformedSignatureError("Signature s component out of range")
        self.r = r
        self.s = s
        self.v = v

    @classmethod
    def from_bytes(cls, sig_bytes: bytes) -> "Signature":
        """
        Create from 65-byte signature (r[32] + s[32] + v[1]).
        """
        if len(sig_bytes) != 65:
            raise MalformedSignatureError(f"Signature must be 65 bytes, got {len(sig_bytes)}")

        r = int.from_bytes(sig_bytes[0:32], byteorder='big')
        s = int.from_bytes(sig_bytes[32:64], byteorder='big')
        v = sig_bytes[64]
        return cls(r, s, v)

    @classmethod
    def from_hex(cls, hex_str: str) -> "Signature":
        try:
            sig_bytes = decode_hex(hex_str)
        except (ValueError, TypeError) as e:
            raise MalformedSignatureError(f"Signature is not valid hex: {e}") from e
        return cls.from_bytes(sig_bytes)

    @classmethod
    def coerce(cls, value: Union["Signature", bytes, str]) -> "Signature":
        """Accept a Signature, 65 raw bytes or a hex string."""
        if isinstance(value, Signature):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls.from_bytes(bytes(value))
        if isinstance(value, str):
            return cls.from_hex(value)
        raise MalformedSignatureError(f"Unsupported signature type: {type(value).__name__}")

    @property
    def vrs(self) -> Tuple[int, int, int]:
        return (self.v, self.r, self.s)

    def to_eth_signature(self) -> EthSignature:
        return EthSignature(vrs=self.vrs)

    def to_bytes(self) -> bytes:
        """
        65-byte encoding with v as 27/28, the form personal_sign emits.
        """
        r_bytes = self.r.to_bytes(32, byteorder='big')
        s_bytes = self.s.to_bytes(32, byteorder='big')
        return r_bytes + s_bytes + bytes([self.v + 27])

    def to_hex(self, with_prefix: bool = True) -> str:
        hex_str = self.to_bytes().hex()
        return f"0x{hex_str}" if with_prefix else hex_str

    def __eq__(self, other) -> bool:
        if not isinstance(other, Signature):
            return False
        return self.vrs == other.vrs

    def __hash__(self) -> int:
        return hash(self.vrs)

    def __repr__(self) -> str:
        return f"Signature(v={self.v}, r={hex(self.r)[:10]}..., s={hex(self.s)[:10]}...)"


def generate_keypair() -> Tuple[PrivateKey, str]:
    """
    Generate a new keypair.

    Returns:
        Tuple of (PrivateKey, address)
    """
    private_key = PrivateKey.generate()
    return private_key, private_key.address
