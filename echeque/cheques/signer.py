"""
Off-ledger signing helpers.

Payers and payees produce authorizations and sign-over assertions with their
own keys; the ledger only ever sees the results.
"""

from typing import Union

from ..crypto import PrivateKey, sign_hash
from .authorization import redemption_hash, sign_over_hash
from .types import ChequeTerms, RedemptionAuthorization, SignOverAssertion, SignOverTerms


def sign_cheque(
    private_key: PrivateKey,
    *,
    cheque_id: Union[bytes, str],
    payee: str,
    amount: int,
    ledger: str,
    valid_from: int = 0,
    valid_thru: int = 0,
) -> RedemptionAuthorization:
    """
    Produce the payer's redemption authorization for a cheque.

    The payer is the address of *private_key*.
    """
    terms = ChequeTerms(
        amount=amount,
        cheque_id=cheque_id,
        valid_from=valid_from,
        valid_thru=valid_thru,
        payee=payee,
        payer=private_key.address,
        ledger=ledger,
    )
    return RedemptionAuthorization(terms=terms, signature=sign_hash(private_key, redemption_hash(terms)))


def sign_over(
    private_key: PrivateKey,
    *,
    cheque_id: Union[bytes, str],
    counter: int,
    new_payee: str,
) -> SignOverAssertion:
    """
    Produce a sign-over assertion from the holder owning *private_key* to *new_payee*.
    """
    terms = SignOverTerms(
        counter=counter,
        cheque_id=cheque_id,
        old_payee=private_key.address,
        new_payee=new_payee,
    )
    return SignOverAssertion(terms=terms, signature=sign_hash(private_key, sign_over_hash(terms)))
