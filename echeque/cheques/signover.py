"""
Sign-Over Chain Tracker

Keeps, per cheque id, the latest notified link of the custody chain. The
tail lives beside the registry rather than inside the cheque record, so the
cheque state machine stays ISSUED -> terminal while custody moves freely.

Notification and redemption are independent: anyone holding a valid
assertion may notify it, and redemption must later present the complete
chain from the original payee up to exactly the notified tail.
"""

from typing import Dict, Iterator, Optional, Sequence, Tuple

from ..constants import MAX_SIGN_OVER_CHAIN, SIGN_OVER_MAGIC
from ..exceptions import (
    AuthorizationError,
    ChequeSignedOverError,
    InvalidChainError,
    InvalidSequenceError,
)
from .authorization import AuthorizationVerifier
from .types import Cheque, SignOverAssertion, SignOverTail, cheque_id_hex


class SignOverTracker:
    """Append-only custody chain tails keyed by cheque id."""

    def __init__(self, verifier: AuthorizationVerifier):
        self._verifier = verifier
        self._tails: Dict[bytes, SignOverTail] = {}

    # ── Read-only views ───────────────────────────────────────────────

    def tail(self, cheque_id: bytes) -> Optional[SignOverTail]:
        return self._tails.get(cheque_id)

    def is_signed_over(self, cheque_id: bytes) -> bool:
        return cheque_id in self._tails

    def holder(self, cheque: Cheque) -> str:
        """Identity currently entitled to redeem *cheque*."""
        tail = self._tails.get(cheque.cheque_id)
        return tail.payee if tail else cheque.payee

    def custodian(self, cheque: Cheque) -> str:
        """
        Identity holding revoke rights: the payer until a sign-over is
        notified, then the newest notified payee.
        """
        tail = self._tails.get(cheque.cheque_id)
        return tail.payee if tail else cheque.payer

    def items(self) -> Iterator[Tuple[bytes, SignOverTail]]:
        return iter(list(self._tails.items()))

    # ── Notification ──────────────────────────────────────────────────

    def notify(self, assertion: SignOverAssertion, cheque: Cheque) -> SignOverTail:
        """
        Append *assertion* as the new tail of the cheque's chain.

        The assertion must carry the protocol tag, be signed by its old payee,
        take the next counter (1 for the first notification) and start from
        the current holder.

        Raises:
            BadSignatureError: If the old payee did not sign it
            InvalidSequenceError: On a wrong tag, counter or linkage
        """
        terms = assertion.terms
        if terms.magic != SIGN_OVER_MAGIC:
            raise InvalidSequenceError(f"Unknown sign-over tag: {terms.magic:#x}")
        if terms.cheque_id != cheque.cheque_id:
            raise InvalidSequenceError("Sign-over names a different cheque")

        self._verifier.verify_sign_over(assertion)

        current = self._tails.get(cheque.cheque_id)
        expected = (current.counter if current else 0) + 1
        if terms.counter != expected:
            raise InvalidSequenceError(
                f"Sign-over counter {terms.counter} does not follow {expected - 1}"
            )
        if terms.old_payee != self.holder(cheque):
            raise InvalidSequenceError("Sign-over does not start from the current holder")

        tail = SignOverTail(counter=terms.counter, payee=terms.new_payee)
        self._tails[cheque.cheque_id] = tail
        return tail

    # ── Redemption guards ─────────────────────────────────────────────

    def require_not_signed_over(self, cheque_id: bytes) -> None:
        if cheque_id in self._tails:
            raise ChequeSignedOverError("Cheque has signed over")

    def validate_chain(self, cheque: Cheque, chain: Sequence[SignOverAssertion]) -> str:
        """
        Validate a presented custody chain against the notified tail.

        Checks, in order: every link is signed by its old payee; counters run
        1..n; link 1 starts at the original payee; each link starts where the
        previous one ended; the final link equals the notified tail.

        Returns:
            The final new payee, who becomes the effective payee

        Raises:
            InvalidChainError: On any mismatch
        """
        tail = self._tails.get(cheque.cheque_id)
        if tail is None:
            raise InvalidChainError("Cheque has not signed over")
        if not chain:
            raise InvalidChainError("Sign-over chain is empty")
        if len(chain) > MAX_SIGN_OVER_CHAIN:
            raise InvalidChainError(f"Sign-over chain longer than {MAX_SIGN_OVER_CHAIN}")

        for link in chain:
            if link.terms.magic != SIGN_OVER_MAGIC or link.cheque_id != cheque.cheque_id:
                raise InvalidChainError(
                    f"Sign-over link {link.counter} does not belong to {cheque_id_hex(cheque.cheque_id)}"
                )
            try:
                self._verifier.verify_sign_over(link)
            except AuthorizationError as e:
                raise InvalidChainError(f"Sign-over link {link.counter} has a bad signature") from e

        for position, link in enumerate(chain, start=1):
            if link.counter != position:
                raise InvalidChainError(f"Sign-over counters not contiguous at position {position}")

        if chain[0].terms.old_payee != cheque.payee:
            raise InvalidChainError("Sign-over chain does not start at the original payee")

        for previous, link in zip(chain, chain[1:]):
            if link.terms.old_payee != previous.terms.new_payee:
                raise InvalidChainError(f"Sign-over link {link.counter} is not connected")

        final = chain[-1].terms
        if final.counter != tail.counter:
            raise InvalidChainError("Cheque has signed over again")
        if final.new_payee != tail.payee:
            raise InvalidChainError("Sign-over chain does not match the notified chain")

        return final.new_payee

    # ── Persistence ───────────────────────────────────────────────────

    def restore(self, cheque_id: bytes, tail: SignOverTail) -> None:
        self._tails[cheque_id] = tail
