"""
E-Cheque Domain Types

Records held by the registry and the signed payloads callers present:

    ChequeTerms              what the payer signs to authorize redemption
    RedemptionAuthorization  ChequeTerms + payer signature
    SignOverTerms            custody transfer from old_payee to new_payee
    SignOverAssertion        SignOverTerms + old_payee signature
"""

import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Union

from eth_utils import decode_hex

from ..constants import (
    CHEQUE_ID_LENGTH,
    MAX_UINT8,
    MAX_UINT32,
    MAX_UINT256,
    SIGN_OVER_MAGIC,
)
from ..crypto import Signature, normalize_address
from ..exceptions import InvalidChequeIdError, ValidationError


# ══════════════════════════════════════════════════════════════════════
#  CHEQUE IDS
# ══════════════════════════════════════════════════════════════════════

def cheque_id_from_string(text: str) -> bytes:
    """
    Encode short text as a bytes32 cheque id (UTF-8, zero right-padded).

    The text must leave room for a terminating zero byte, so at most 31 bytes.
    """
    raw = text.encode("utf-8")
    if len(raw) > CHEQUE_ID_LENGTH - 1:
        raise InvalidChequeIdError("Cheque id text must be at most 31 bytes")
    return raw.ljust(CHEQUE_ID_LENGTH, b"\x00")


def normalize_cheque_id(value: Union[bytes, str]) -> bytes:
    """Accept 32 raw bytes or a 0x-prefixed 64-hex-digit string."""
    if isinstance(value, str):
        try:
            value = decode_hex(value)
        except (ValueError, TypeError) as e:
            raise InvalidChequeIdError(f"Cheque id is not valid hex: {value!r}") from e
    if not isinstance(value, (bytes, bytearray)) or len(value) != CHEQUE_ID_LENGTH:
        raise InvalidChequeIdError("Cheque id must be exactly 32 bytes")
    return bytes(value)


def cheque_id_hex(cheque_id: bytes) -> str:
    return "0x" + cheque_id.hex()


def _require_uint(name: str, value: int, upper: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if value < 0 or value > upper:
        raise ValidationError(f"{name} out of range: {value}")
    return value


# ══════════════════════════════════════════════════════════════════════
#  CHEQUE RECORD
# ══════════════════════════════════════════════════════════════════════

class ChequeStatus(IntEnum):
    """Cheque lifecycle status. Values match the on-chain enum."""
    UNISSUED = 0
    ISSUED = 1
    REDEEMED = 2
    REVOKED = 3

    @property
    def is_terminal(self) -> bool:
        return self in (ChequeStatus.REDEEMED, ChequeStatus.REVOKED)


@dataclass
class Cheque:
    """
    A registered cheque.

    Attributes:
        cheque_id: 32-byte id chosen by the payer
        payer: Identity whose balance is debited on redemption
        payee: Original payee named at issuance
        amount: Amount in wei
        valid_from: Earliest redemption time (0 = unbounded)
        valid_thru: Latest redemption time (0 = unbounded)
        status: Lifecycle status
        created_at: Issuance timestamp
    """
    cheque_id: bytes
    payer: str
    payee: str
    amount: int
    valid_from: int = 0
    valid_thru: int = 0
    status: ChequeStatus = ChequeStatus.ISSUED
    created_at: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chequeId": cheque_id_hex(self.cheque_id),
            "payer": self.payer,
            "payee": self.payee,
            "amount": str(self.amount),
            "validFrom": self.valid_from,
            "validThru": self.valid_thru,
            "status": self.status.name,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cheque":
        return cls(
            cheque_id=normalize_cheque_id(data["chequeId"]),
            payer=normalize_address(data["payer"]),
            payee=normalize_address(data["payee"]),
            amount=int(data["amount"]),
            valid_from=int(data.get("validFrom", 0)),
            valid_thru=int(data.get("validThru", 0)),
            status=ChequeStatus[data.get("status", "ISSUED")],
            created_at=int(data.get("createdAt", 0)),
        )


# ══════════════════════════════════════════════════════════════════════
#  REDEMPTION AUTHORIZATION
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ChequeTerms:
    """
    Terms signed by the payer.

    Attributes:
        amount: Amount in wei (uint256)
        cheque_id: 32-byte cheque id
        valid_from: uint32 timestamp, 0 = unbounded
        valid_thru: uint32 timestamp, 0 = unbounded
        payee: Original payee
        payer: Signing payer
        ledger: Address identifying the ledger instance the cheque is drawn on
    """
    amount: int
    cheque_id: bytes
    valid_from: int
    valid_thru: int
    payee: str
    payer: str
    ledger: str

    def __post_init__(self):
        _require_uint("amount", self.amount, MAX_UINT256)
        _require_uint("valid_from", self.valid_from, MAX_UINT32)
        _require_uint("valid_thru", self.valid_thru, MAX_UINT32)
        object.__setattr__(self, "cheque_id", normalize_cheque_id(self.cheque_id))
        object.__setattr__(self, "payee", normalize_address(self.payee))
        object.__setattr__(self, "payer", normalize_address(self.payer))
        object.__setattr__(self, "ledger", normalize_address(self.ledger))

    def matches(self, cheque: Cheque) -> bool:
        """True when these terms describe the registered *cheque*."""
        return (
            self.cheque_id == cheque.cheque_id
            and self.payer == cheque.payer
            and self.payee == cheque.payee
            and self.amount == cheque.amount
            and self.valid_from == cheque.valid_from
            and self.valid_thru == cheque.valid_thru
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": str(self.amount),
            "chequeId": cheque_id_hex(self.cheque_id),
            "validFrom": self.valid_from,
            "validThru": self.valid_thru,
            "payee": self.payee,
            "payer": self.payer,
            "ledger": self.ledger,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChequeTerms":
        return cls(
            amount=int(data["amount"]),
            cheque_id=data["chequeId"],
            valid_from=int(data.get("validFrom", 0)),
            valid_thru=int(data.get("validThru", 0)),
            payee=data["payee"],
            payer=data["payer"],
            ledger=data["ledger"],
        )


@dataclass(frozen=True)
class RedemptionAuthorization:
    """Cheque terms plus the payer's personal_sign signature over their hash."""
    terms: ChequeTerms
    signature: Signature

    def __post_init__(self):
        object.__setattr__(self, "signature", Signature.coerce(self.signature))

    @property
    def cheque_id(self) -> bytes:
        return self.terms.cheque_id

    def to_dict(self) -> Dict[str, Any]:
        return {"cheque": self.terms.to_dict(), "signature": self.signature.to_hex()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RedemptionAuthorization":
        return cls(terms=ChequeTerms.from_dict(data["cheque"]), signature=data["signature"])


# ══════════════════════════════════════════════════════════════════════
#  SIGN-OVER
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SignOverTerms:
    """
    Custody transfer signed by *old_payee*.

    Attributes:
        counter: Position in the chain, starting at 1 (uint8)
        cheque_id: Cheque being signed over
        old_payee: Current holder giving up redemption rights
        new_payee: Holder receiving redemption rights
        magic: Protocol tag, always SIGN_OVER_MAGIC for accepted assertions
    """
    counter: int
    cheque_id: bytes
    old_payee: str
    new_payee: str
    magic: int = SIGN_OVER_MAGIC

    def __post_init__(self):
        _require_uint("counter", self.counter, MAX_UINT8)
        _require_uint("magic", self.magic, MAX_UINT32)
        object.__setattr__(self, "cheque_id", normalize_cheque_id(self.cheque_id))
        object.__setattr__(self, "old_payee", normalize_address(self.old_payee))
        object.__setattr__(self, "new_payee", normalize_address(self.new_payee))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "magicNumber": self.magic,
            "counter": self.counter,
            "chequeId": cheque_id_hex(self.cheque_id),
            "oldPayee": self.old_payee,
            "newPayee": self.new_payee,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignOverTerms":
        return cls(
            counter=int(data["counter"]),
            cheque_id=data["chequeId"],
            old_payee=data["oldPayee"],
            new_payee=data["newPayee"],
            magic=int(data.get("magicNumber", SIGN_OVER_MAGIC)),
        )


@dataclass(frozen=True)
class SignOverAssertion:
    """Sign-over terms plus the old payee's signature."""
    terms: SignOverTerms
    signature: Signature

    def __post_init__(self):
        object.__setattr__(self, "signature", Signature.coerce(self.signature))

    @property
    def counter(self) -> int:
        return self.terms.counter

    @property
    def cheque_id(self) -> bytes:
        return self.terms.cheque_id

    def to_dict(self) -> Dict[str, Any]:
        return {"signOver": self.terms.to_dict(), "signature": self.signature.to_hex()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignOverAssertion":
        return cls(terms=SignOverTerms.from_dict(data["signOver"]), signature=data["signature"])


@dataclass(frozen=True)
class SignOverTail:
    """Latest notified link of a cheque's custody chain."""
    counter: int
    payee: str

    def to_dict(self) -> Dict[str, Any]:
        return {"counter": self.counter, "payee": self.payee}
