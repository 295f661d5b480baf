"""
Authorization Verifier

Canonical hashing of redemption terms and sign-over terms, and the single
recover-and-compare primitive used to authenticate both.

Hash layouts (abi.encodePacked, then keccak256):

    redemption: bytes32 chequeId, address payer, address payee, uint256 amount,
                uint32 validFrom, uint32 validThru, address ledger
    sign-over:  uint32 magic, uint8 counter, bytes32 chequeId,
                address oldPayee, address newPayee

Both hashes are signed personal_sign style. The verifier keeps no state:
a replayed authorization is rejected by the registry status guard, not here.
"""

from ..constants import REDEMPTION_HASH_TYPES, SIGN_OVER_HASH_TYPES
from ..crypto import Signature, keccak256, normalize_address, pack, recover_signer
from ..exceptions import BadSignatureError, InvalidChequeError, MalformedSignatureError
from ..logger import get_logger
from .types import Cheque, ChequeTerms, RedemptionAuthorization, SignOverAssertion, SignOverTerms

logger = get_logger(__name__)


def redemption_hash(terms: ChequeTerms) -> bytes:
    """Canonical 32-byte hash of the terms a payer signs."""
    return keccak256(pack(REDEMPTION_HASH_TYPES, (
        terms.cheque_id,
        terms.payer,
        terms.payee,
        terms.amount,
        terms.valid_from,
        terms.valid_thru,
        terms.ledger,
    )))


def sign_over_hash(terms: SignOverTerms) -> bytes:
    """Canonical 32-byte hash of a sign-over assertion."""
    return keccak256(pack(SIGN_OVER_HASH_TYPES, (
        terms.magic,
        terms.counter,
        terms.cheque_id,
        terms.old_payee,
        terms.new_payee,
    )))


class AuthorizationVerifier:
    """
    Recovers signers and compares them with the identity a check expects.

    Args:
        ledger_address: Identifier of this ledger instance; redemption terms
            drawn on any other ledger are rejected.
    """

    def __init__(self, ledger_address: str):
        self.ledger_address = normalize_address(ledger_address)

    def recover(self, msg_hash: bytes, signature: Signature) -> str:
        return recover_signer(msg_hash, signature)

    def verify(self, msg_hash: bytes, signature: Signature, expected_signer: str) -> str:
        """
        Check that *signature* over *msg_hash* was produced by *expected_signer*.

        Returns:
            The recovered signer

        Raises:
            BadSignatureError: If the recovered identity differs or recovery fails
        """
        try:
            signer = self.recover(msg_hash, signature)
        except MalformedSignatureError as e:
            raise BadSignatureError(str(e)) from e
        if signer != expected_signer:
            raise BadSignatureError(
                f"Signature recovers to {signer}, expected {expected_signer}"
            )
        return signer

    def verify_terms(self, terms: ChequeTerms, cheque: Cheque) -> None:
        """
        Raises:
            InvalidChequeError: Terms differ from the cheque or name another ledger
        """
        if terms.ledger != self.ledger_address:
            raise InvalidChequeError(f"Invalid cheque: drawn on ledger {terms.ledger}")
        if not terms.matches(cheque):
            raise InvalidChequeError("Invalid cheque: terms do not match the issued cheque")

    def verify_redemption(self, authorization: RedemptionAuthorization, cheque: Cheque) -> None:
        """
        Check presented terms against the registered cheque, then the payer signature.

        Raises:
            InvalidChequeError: Terms differ from the cheque or name another ledger
            BadSignatureError: Signature was not produced by the cheque's payer
        """
        terms = authorization.terms
        self.verify_terms(terms, cheque)
        try:
            self.verify(redemption_hash(terms), authorization.signature, cheque.payer)
        except BadSignatureError as e:
            logger.debug(f"Rejected redemption signature for 0x{cheque.cheque_id.hex()}: {e}")
            raise BadSignatureError("Invalid cheque: signature does not match the payer") from e

    def verify_sign_over(self, assertion: SignOverAssertion) -> None:
        """
        Check that the assertion was signed by its old payee.

        Raises:
            BadSignatureError: On signer mismatch
        """
        terms = assertion.terms
        self.verify(sign_over_hash(terms), assertion.signature, terms.old_payee)
