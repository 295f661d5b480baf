"""
Settlement Rail

The ledger only books value; moving it in and out is the rail's job. Deposits
ask the rail to collect from the caller before crediting, withdrawals debit
first and ask the rail to pay. A failing rail raises and the ledger rolls back.
"""

from abc import ABC, abstractmethod
from typing import Dict

from ..exceptions import InsufficientFundsError, ZeroAmountError
from ..logger import get_logger

logger = get_logger(__name__)


class SettlementRail(ABC):
    """Moves value between external accounts and the ledger."""

    @abstractmethod
    async def collect(self, payer: str, amount: int) -> None:
        """Take *amount* from *payer* into the ledger."""

    @abstractmethod
    async def pay(self, recipient: str, amount: int) -> None:
        """Send *amount* from the ledger to *recipient*."""


class InMemoryRail(SettlementRail):
    """
    Reference rail holding external balances in a dict.

    Args:
        strict: When True, collect fails for identities without enough
            external funds; otherwise external balances may go negative,
            which is convenient for tests that only care about the ledger.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._external: Dict[str, int] = {}

    def fund(self, identity: str, amount: int) -> None:
        if amount <= 0:
            raise ZeroAmountError("Amount must be bigger than 0")
        self._external[identity] = self._external.get(identity, 0) + amount

    def external_balance_of(self, identity: str) -> int:
        return self._external.get(identity, 0)

    async def collect(self, payer: str, amount: int) -> None:
        balance = self._external.get(payer, 0)
        if self.strict and balance < amount:
            raise InsufficientFundsError(f"{payer} holds {balance} off-ledger, needs {amount}")
        self._external[payer] = balance - amount
        logger.debug(f"Rail collected {amount} wei from {payer}")

    async def pay(self, recipient: str, amount: int) -> None:
        self._external[recipient] = self._external.get(recipient, 0) + amount
        logger.debug(f"Rail paid {amount} wei to {recipient}")
