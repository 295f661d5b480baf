"""
E-Cheque Ledger Module

Balances, pending withdrawals and the settlement rail interface.
"""

from .accounts import AccountLedger
from .pending import PendingWithdrawalQueue
from .rail import SettlementRail, InMemoryRail

__all__ = [
    "AccountLedger",
    "PendingWithdrawalQueue",
    "SettlementRail",
    "InMemoryRail",
]
