"""
E-Cheque Crypto Signing Module

personal_sign over a 32-byte hash and the matching recovery. This is what a
wallet does for signMessage(arrayify(hash)), so authorizations produced by
standard Web3 wallets verify here unchanged.
"""

from eth_keys.exceptions import BadSignature as EthBadSignature

from ..constants import PERSONAL_SIGN_PREFIX
from ..exceptions import ValidationError, MalformedSignatureError
from .hashing import keccak256
from .keys import PrivateKey, Signature


def personal_sign_digest(msg_hash: bytes) -> bytes:
    """
    Digest actually signed for a 32-byte hash under personal_sign.

    keccak256("\\x19Ethereum Signed Message:\\n32" || msg_hash)
    """
    if len(msg_hash) != 32:
        raise ValidationError(f"Message hash must be 32 bytes, got {len(msg_hash)}")
    return keccak256(PERSONAL_SIGN_PREFIX + msg_hash)


def sign_hash(private_key: PrivateKey, msg_hash: bytes) -> Signature:
    """
    Sign a 32-byte hash personal_sign style.

    Args:
        private_key: Signer's key
        msg_hash: Canonical hash (redemption or sign-over)

    Returns:
        Signature
    """
    return private_key.sign_msg_hash(personal_sign_digest(msg_hash))


def recover_signer(msg_hash: bytes, signature: Signature) -> str:
    """
    Recover the checksummed identity that personal_signed *msg_hash*.

    Raises:
        MalformedSignatureError: If no public key can be recovered
    """
    digest = personal_sign_digest(msg_hash)
    try:
        public_key = signature.to_eth_signature().recover_public_key_from_msg_hash(digest)
    except EthBadSignature as e:
        raise MalformedSignatureError(f"Cannot recover signer: {e}") from e
    return public_key.to_checksum_address()
