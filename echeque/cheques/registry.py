"""
Cheque Registry

Per-id cheque records and the status state machine:

    UNISSUED --issue--> ISSUED --redeem--> REDEEMED
                               --revoke--> REVOKED

REDEEMED and REVOKED are terminal and an id is issued at most once.
"""

from typing import Dict, Iterator, Optional

from ..constants import MAX_UINT32, MAX_UINT256
from ..exceptions import (
    ChequeExistsError,
    ChequeNotFoundError,
    ChequeRedeemedError,
    ChequeRevokedError,
    NotOwnerError,
    ValidationError,
    ZeroAmountError,
)
from .types import Cheque, ChequeStatus, _require_uint, cheque_id_hex


class ChequeRegistry:
    """Keyed store of issued cheques."""

    def __init__(self):
        self._cheques: Dict[bytes, Cheque] = {}

    # ── Read-only views ───────────────────────────────────────────────

    def get(self, cheque_id: bytes) -> Optional[Cheque]:
        return self._cheques.get(cheque_id)

    def status(self, cheque_id: bytes) -> ChequeStatus:
        cheque = self._cheques.get(cheque_id)
        return cheque.status if cheque else ChequeStatus.UNISSUED

    def __len__(self) -> int:
        return len(self._cheques)

    def __iter__(self) -> Iterator[Cheque]:
        return iter(list(self._cheques.values()))

    # ── State guards ──────────────────────────────────────────────────

    def require(self, cheque_id: bytes) -> Cheque:
        cheque = self._cheques.get(cheque_id)
        if cheque is None:
            raise ChequeNotFoundError(f"Cheque {cheque_id_hex(cheque_id)} not issued")
        return cheque

    def require_issued(self, cheque_id: bytes) -> Cheque:
        """Return the cheque if it exists and has not reached a terminal state."""
        cheque = self.require(cheque_id)
        if cheque.status.is_terminal:
            if cheque.status == ChequeStatus.REDEEMED:
                raise ChequeRedeemedError("Cheque id redeemed")
            raise ChequeRevokedError("Cheque id revoked")
        return cheque

    # ── Transitions ───────────────────────────────────────────────────

    def issue(
        self,
        cheque_id: bytes,
        payer: str,
        payee: str,
        amount: int,
        valid_from: int,
        valid_thru: int,
        now: int,
    ) -> Cheque:
        """
        Register a new cheque in ISSUED state.

        No funds are checked or reserved; the payer's balance is only
        consulted at redemption.

        Raises:
            ChequeExistsError: If the id was ever issued
            ZeroAmountError: If amount is zero
            ValidationError: If amount or a window bound is not an in-range
                integer, or the window is inverted
        """
        if cheque_id in self._cheques:
            raise ChequeExistsError("Cheque id exists")
        _require_uint("amount", amount, MAX_UINT256)
        if amount == 0:
            raise ZeroAmountError("Cheque amount must be bigger than 0")
        _require_uint("valid_from", valid_from, MAX_UINT32)
        _require_uint("valid_thru", valid_thru, MAX_UINT32)
        if valid_from and valid_thru and valid_thru < valid_from:
            raise ValidationError("valid_thru precedes valid_from")

        cheque = Cheque(
            cheque_id=cheque_id,
            payer=payer,
            payee=payee,
            amount=amount,
            valid_from=valid_from,
            valid_thru=valid_thru,
            status=ChequeStatus.ISSUED,
            created_at=now,
        )
        self._cheques[cheque_id] = cheque
        return cheque

    def revoke(self, cheque_id: bytes, caller: str, custodian: Optional[str] = None) -> Cheque:
        """
        Move an ISSUED cheque to REVOKED.

        Args:
            cheque_id: Cheque to revoke
            caller: Identity attempting the revocation
            custodian: Identity currently holding revoke rights
                (defaults to the payer)

        Raises:
            ChequeNotFoundError, ChequeRedeemedError, ChequeRevokedError, NotOwnerError
        """
        cheque = self.require_issued(cheque_id)
        owner = custodian or cheque.payer
        if caller != owner:
            raise NotOwnerError("Not the owner of the cheque")
        cheque.status = ChequeStatus.REVOKED
        return cheque

    def mark_redeemed(self, cheque_id: bytes) -> Cheque:
        cheque = self.require_issued(cheque_id)
        cheque.status = ChequeStatus.REDEEMED
        return cheque

    # ── Persistence ───────────────────────────────────────────────────

    def restore(self, cheque: Cheque) -> None:
        """Load a persisted record as-is."""
        self._cheques[cheque.cheque_id] = cheque

    def to_dict(self) -> Dict[str, Dict]:
        return {cheque_id_hex(cid): c.to_dict() for cid, c in self._cheques.items()}
