"""
Pending Withdrawal Queue

Amounts owed to payees by redeemed cheques but not yet paid out. A bucket is
credited by redemption and drained only by its owner through withdraw_to.
"""

from typing import Dict, Iterator, Tuple

from ..exceptions import InsufficientPendingError, ZeroAmountError


class PendingWithdrawalQueue:
    """Per-identity payable amounts; never negative."""

    def __init__(self):
        self._pending: Dict[str, int] = {}

    def pending_of(self, identity: str) -> int:
        return self._pending.get(identity, 0)

    def credit(self, identity: str, amount: int) -> int:
        if amount <= 0:
            raise ZeroAmountError("Amount must be bigger than 0")
        pending = self.pending_of(identity) + amount
        self._pending[identity] = pending
        return pending

    def debit(self, identity: str, amount: int) -> int:
        """
        Remove *amount* from the bucket of *identity*.

        Raises:
            ZeroAmountError: If amount is not positive
            InsufficientPendingError: If the bucket holds less than *amount*
        """
        if amount <= 0:
            raise ZeroAmountError("Amount must be bigger than 0")
        pending = self.pending_of(identity)
        if pending < amount:
            raise InsufficientPendingError(f"{identity} pending {pending} < {amount}")
        self._pending[identity] = pending - amount
        return pending - amount

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(list(self._pending.items()))

    def restore(self, identity: str, amount: int) -> None:
        self._pending[identity] = amount

    def to_dict(self) -> Dict[str, str]:
        return {identity: str(amount) for identity, amount in self._pending.items()}
