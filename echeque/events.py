"""
Ledger events.

One frozen record is appended for every successful mutation. Amounts are
rendered as decimal strings in to_dict() so uint256 values survive JSON.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class ChequeIssued:
    """Emitted when a payer registers a cheque."""
    cheque_id: str
    payer: str
    payee: str
    amount: int
    valid_from: int
    valid_thru: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ChequeIssued",
            "chequeId": self.cheque_id,
            "payer": self.payer,
            "payee": self.payee,
            "amount": str(self.amount),
            "validFrom": self.valid_from,
            "validThru": self.valid_thru,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ChequeRevoked:
    """Emitted when the custodian revokes a cheque."""
    cheque_id: str
    revoked_by: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ChequeRevoked",
            "chequeId": self.cheque_id,
            "revokedBy": self.revoked_by,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class SignOverNotified:
    """Emitted when a sign-over extends a cheque's custody chain."""
    cheque_id: str
    counter: int
    old_payee: str
    new_payee: str
    notified_by: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "SignOverNotified",
            "chequeId": self.cheque_id,
            "counter": self.counter,
            "oldPayee": self.old_payee,
            "newPayee": self.new_payee,
            "notifiedBy": self.notified_by,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ChequeRedeemed:
    """Emitted when a cheque is settled into a pending withdrawal."""
    cheque_id: str
    payer: str
    payee: str
    amount: int
    redeemed_by: str
    chain_length: int = 0
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ChequeRedeemed",
            "chequeId": self.cheque_id,
            "payer": self.payer,
            "payee": self.payee,
            "amount": str(self.amount),
            "redeemedBy": self.redeemed_by,
            "chainLength": self.chain_length,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Deposited:
    account: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Deposited",
            "account": self.account,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Withdrawn:
    account: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Withdrawn",
            "account": self.account,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class WithdrawnTo:
    """Emitted when a payee pays out part of its pending withdrawal."""
    account: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "WithdrawnTo",
            "account": self.account,
            "recipient": self.recipient,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }
