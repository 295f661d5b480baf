"""
Account Ledger

Per-identity balances in wei. Accounts appear on first credit and are never
deleted; a zero balance reads the same as an unseen identity.
"""

from typing import Dict, Iterator, Tuple

from ..exceptions import InsufficientBalanceError, ZeroAmountError


class AccountLedger:
    """Pooled balances keyed by checksummed identity."""

    def __init__(self):
        self._balances: Dict[str, int] = {}

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def has_funds(self, identity: str, amount: int) -> bool:
        return self.balance_of(identity) >= amount

    def credit(self, identity: str, amount: int) -> int:
        """Add *amount* to the balance of *identity* and return the new balance."""
        if amount <= 0:
            raise ZeroAmountError("Amount must be bigger than 0")
        balance = self.balance_of(identity) + amount
        self._balances[identity] = balance
        return balance

    def debit(self, identity: str, amount: int) -> int:
        """
        Remove *amount* from the balance of *identity*.

        Raises:
            ZeroAmountError: If amount is not positive
            InsufficientBalanceError: If the balance is lower than *amount*
        """
        if amount <= 0:
            raise ZeroAmountError("Amount must be bigger than 0")
        balance = self.balance_of(identity)
        if balance < amount:
            raise InsufficientBalanceError(f"{identity} balance {balance} < {amount}")
        self._balances[identity] = balance - amount
        return balance - amount

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(list(self._balances.items()))

    def restore(self, identity: str, balance: int) -> None:
        self._balances[identity] = balance

    def to_dict(self) -> Dict[str, str]:
        return {identity: str(balance) for identity, balance in self._balances.items()}
