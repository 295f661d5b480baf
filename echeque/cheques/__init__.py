"""
E-Cheque Cheques Module

Cheque records, signed payloads, authorization checks and custody chains.
"""

from .types import (
    Cheque,
    ChequeStatus,
    ChequeTerms,
    RedemptionAuthorization,
    SignOverTerms,
    SignOverAssertion,
    SignOverTail,
    cheque_id_from_string,
    cheque_id_hex,
    normalize_cheque_id,
)
from .authorization import AuthorizationVerifier, redemption_hash, sign_over_hash
from .registry import ChequeRegistry
from .signover import SignOverTracker
from .signer import sign_cheque, sign_over

__all__ = [
    # Types
    "Cheque",
    "ChequeStatus",
    "ChequeTerms",
    "RedemptionAuthorization",
    "SignOverTerms",
    "SignOverAssertion",
    "SignOverTail",
    "cheque_id_from_string",
    "cheque_id_hex",
    "normalize_cheque_id",
    # Verification
    "AuthorizationVerifier",
    "redemption_hash",
    "sign_over_hash",
    # State
    "ChequeRegistry",
    "SignOverTracker",
    # Signing
    "sign_cheque",
    "sign_over",
]
