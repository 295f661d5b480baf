"""
E-Cheque Bank Test Suite

Coverage:
  - Issue / revoke lifecycle and custody-based revoke rights
  - Plain redemption: terms, signature, validity window, funds
  - Sign-over notification and chain redemption
  - Deposits, withdrawals and pending-withdrawal payouts
  - Atomicity: failing calls leave every map untouched
  - Concurrent redemption through asyncio.gather
  - Events and read-only views

Run with:
    pytest tests/test_bank.py -v
"""

import asyncio

import pytest
from eth_account import Account

from echeque.bank import ChequeBank
from echeque.cheques import (
    ChequeStatus,
    cheque_id_from_string,
    cheque_id_hex,
    sign_cheque,
    sign_over,
)
from echeque.crypto import PrivateKey
from echeque.events import (
    ChequeIssued,
    ChequeRedeemed,
    ChequeRevoked,
    Deposited,
    SignOverNotified,
    Withdrawn,
    WithdrawnTo,
)
from echeque.exceptions import (
    AuthorizationError,
    BadSignatureError,
    ChequeExistsError,
    ChequeExpiredError,
    ChequeNotFoundError,
    ChequeNotStartedError,
    ChequeRedeemedError,
    ChequeRevokedError,
    ChequeSignedOverError,
    InsufficientBalanceError,
    InsufficientFundsError,
    InsufficientPendingError,
    InvalidChainError,
    InvalidChequeError,
    InvalidSequenceError,
    NotOwnerError,
    TimingError,
    ValidationError,
    ZeroAmountError,
)
from echeque.ledger import InMemoryRail


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

def new_key() -> PrivateKey:
    return PrivateKey(bytes(Account.create().key))


PAYER = new_key()
PAYEE = new_key()
SECOND = new_key()
THIRD = new_key()
STRANGER = new_key()

LEDGER = "0x" + "11" * 20
OTHER_LEDGER = "0x" + "22" * 20
CID = cheque_id_from_string("1")
ONE_ETHER = 10 ** 18
NOW = 1_700_000_000


class FailingRail(InMemoryRail):
    """Rail whose payouts always fail."""

    async def pay(self, recipient: str, amount: int) -> None:
        raise ConnectionError("rail offline")


def make_bank(rail=None) -> ChequeBank:
    return ChequeBank(LEDGER, rail=rail, clock=lambda: NOW)


def authorize(amount: int = ONE_ETHER, cheque_id=CID, ledger: str = LEDGER, **window):
    return sign_cheque(
        PAYER, cheque_id=cheque_id, payee=PAYEE.address, amount=amount, ledger=ledger, **window,
    )


def two_hop_chain():
    return [
        sign_over(PAYEE, cheque_id=CID, counter=1, new_payee=SECOND.address),
        sign_over(SECOND, cheque_id=CID, counter=2, new_payee=THIRD.address),
    ]


async def issued_bank(amount: int = ONE_ETHER, balance: int = 20 * ONE_ETHER, rail=None, **window) -> ChequeBank:
    bank = make_bank(rail)
    if balance:
        await bank.deposit(PAYER.address, balance)
    await bank.issue_cheque(PAYER.address, CID, PAYEE.address, amount, **window)
    return bank


async def signed_over_bank(chain) -> ChequeBank:
    bank = await issued_bank()
    for link in chain:
        await bank.notify_sign_over(STRANGER.address, link)
    return bank


def state_of(bank: ChequeBank) -> dict:
    state = bank.to_dict()
    for cheque in state["cheques"].values():
        cheque.pop("createdAt", None)
    return state


# ══════════════════════════════════════════════════════════════════════
#  SCENARIOS
# ══════════════════════════════════════════════════════════════════════


class TestScenarios:

    @pytest.mark.asyncio
    async def test_redeem_then_withdraw_to(self):
        bank = await issued_bank()

        event = await bank.redeem(PAYEE.address, authorize())
        assert event.payee == PAYEE.address
        assert bank.balance_of(PAYER.address) == 19 * ONE_ETHER
        assert bank.pending_withdrawal_of(PAYEE.address) == ONE_ETHER
        assert bank.cheque_status(CID) == ChequeStatus.REDEEMED

        remaining = await bank.withdraw_to(PAYEE.address, ONE_ETHER, PAYEE.address)
        assert remaining == 0
        assert bank.pending_withdrawal_of(PAYEE.address) == 0
        assert bank.rail.external_balance_of(PAYEE.address) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_redeem_before_valid_from(self):
        bank = await issued_bank(valid_from=NOW + 100)
        with pytest.raises(ChequeNotStartedError, match="The cheque not start yet"):
            await bank.redeem(PAYEE.address, authorize(valid_from=NOW + 100))
        assert bank.cheque_status(CID) == ChequeStatus.ISSUED

    @pytest.mark.asyncio
    async def test_redeem_after_valid_thru(self):
        bank = await issued_bank(valid_thru=1)
        with pytest.raises(ChequeExpiredError, match="The cheque expired"):
            await bank.redeem(PAYEE.address, authorize(valid_thru=1))

    @pytest.mark.asyncio
    async def test_signature_over_other_amount(self):
        bank = await issued_bank()
        with pytest.raises(AuthorizationError, match="Invalid cheque"):
            await bank.redeem(PAYEE.address, authorize(amount=2 * ONE_ETHER))
        assert bank.balance_of(PAYER.address) == 20 * ONE_ETHER

    @pytest.mark.asyncio
    async def test_two_hop_chain(self):
        chain = two_hop_chain()
        bank = await signed_over_bank(chain)

        with pytest.raises(AuthorizationError):
            await bank.redeem_sign_over(THIRD.address, authorize(), chain[:1])

        event = await bank.redeem_sign_over(THIRD.address, authorize(), chain)
        assert event.payee == THIRD.address
        assert event.chain_length == 2
        assert bank.pending_withdrawal_of(THIRD.address) == ONE_ETHER
        assert bank.pending_withdrawal_of(PAYEE.address) == 0
        assert bank.balance_of(PAYER.address) == 19 * ONE_ETHER


# ══════════════════════════════════════════════════════════════════════
#  ISSUE / REVOKE
# ══════════════════════════════════════════════════════════════════════


class TestIssue:

    @pytest.mark.asyncio
    async def test_issue_records_cheque(self):
        bank = make_bank()
        cheque = await bank.issue_cheque(PAYER.address.lower(), CID, PAYEE.address, ONE_ETHER)
        assert cheque.payer == PAYER.address
        assert cheque.status == ChequeStatus.ISSUED
        assert cheque.created_at == NOW
        assert bank.cheque_status(CID) == ChequeStatus.ISSUED

    @pytest.mark.asyncio
    async def test_issue_does_not_need_funds(self):
        bank = make_bank()
        await bank.issue_cheque(PAYER.address, CID, PAYEE.address, 100 * ONE_ETHER)
        assert bank.balance_of(PAYER.address) == 0

    @pytest.mark.asyncio
    async def test_issue_twice(self):
        bank = await issued_bank()
        with pytest.raises(ChequeExistsError, match="Cheque id exists"):
            await bank.issue_cheque(PAYER.address, CID, SECOND.address, ONE_ETHER)
        assert bank.get_cheque(CID).payee == PAYEE.address

    @pytest.mark.asyncio
    async def test_issue_id_after_revoke(self):
        bank = await issued_bank()
        await bank.revoke(PAYER.address, CID)
        with pytest.raises(ChequeExistsError):
            await bank.issue_cheque(PAYER.address, CID, PAYEE.address, ONE_ETHER)

    @pytest.mark.asyncio
    async def test_issue_zero_amount(self):
        with pytest.raises(ZeroAmountError):
            await make_bank().issue_cheque(PAYER.address, CID, PAYEE.address, 0)

    @pytest.mark.asyncio
    async def test_issue_inverted_window(self):
        with pytest.raises(ValidationError):
            await make_bank().issue_cheque(
                PAYER.address, CID, PAYEE.address, ONE_ETHER, valid_from=NOW, valid_thru=NOW - 1,
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bound", ["5", 1.5, True])
    async def test_issue_rejects_non_integer_window(self, bound):
        bank = make_bank()
        with pytest.raises(ValidationError):
            await bank.issue_cheque(PAYER.address, CID, PAYEE.address, ONE_ETHER, valid_from=bound)
        with pytest.raises(ValidationError):
            await bank.issue_cheque(PAYER.address, CID, PAYEE.address, ONE_ETHER, valid_thru=bound)
        assert bank.cheque_status(CID) == ChequeStatus.UNISSUED
        assert bank.events == []

    @pytest.mark.asyncio
    async def test_issue_accepts_hex_id(self):
        bank = make_bank()
        await bank.issue_cheque(PAYER.address, cheque_id_hex(CID), PAYEE.address, ONE_ETHER)
        assert bank.cheque_status(CID) == ChequeStatus.ISSUED

    def test_unissued_status(self):
        bank = make_bank()
        assert bank.cheque_status(CID) == ChequeStatus.UNISSUED
        assert bank.get_cheque(CID) is None

    @pytest.mark.asyncio
    async def test_get_cheque_returns_copy(self):
        bank = await issued_bank()
        cheque = bank.get_cheque(CID)
        cheque.status = ChequeStatus.REVOKED
        assert bank.cheque_status(CID) == ChequeStatus.ISSUED


class TestRevoke:

    @pytest.mark.asyncio
    async def test_payer_revokes(self):
        bank = await issued_bank()
        cheque = await bank.revoke(PAYER.address, CID)
        assert cheque.status == ChequeStatus.REVOKED

        with pytest.raises(ChequeRevokedError, match="Cheque id revoked"):
            await bank.redeem(PAYEE.address, authorize())
        assert bank.pending_withdrawal_of(PAYEE.address) == 0

    @pytest.mark.asyncio
    async def test_revoke_twice(self):
        bank = await issued_bank()
        await bank.revoke(PAYER.address, CID)
        with pytest.raises(ChequeRevokedError):
            await bank.revoke(PAYER.address, CID)

    @pytest.mark.asyncio
    async def test_non_owner_cannot_revoke(self):
        bank = await issued_bank()
        for caller in (PAYEE.address, STRANGER.address):
            with pytest.raises(NotOwnerError, match="Not the owner of the cheque"):
                await bank.revoke(caller, CID)
        assert bank.cheque_status(CID) == ChequeStatus.ISSUED

    @pytest.mark.asyncio
    async def test_revoke_after_redeem(self):
        bank = await issued_bank()
        await bank.redeem(PAYEE.address, authorize())
        with pytest.raises(ChequeRedeemedError, match="Cheque id redeemed"):
            await bank.revoke(PAYER.address, CID)

    @pytest.mark.asyncio
    async def test_revoke_unknown(self):
        with pytest.raises(ChequeNotFoundError):
            await make_bank().revoke(PAYER.address, CID)

    @pytest.mark.asyncio
    async def test_payer_loses_revoke_rights_after_sign_over(self):
        bank = await signed_over_bank(two_hop_chain()[:1])
        with pytest.raises(NotOwnerError):
            await bank.revoke(PAYER.address, CID)
        with pytest.raises(NotOwnerError):
            await bank.revoke(PAYEE.address, CID)

        await bank.revoke(SECOND.address, CID)
        assert bank.cheque_status(CID) == ChequeStatus.REVOKED

    @pytest.mark.asyncio
    async def test_latest_holder_revokes(self):
        bank = await signed_over_bank(two_hop_chain())
        with pytest.raises(NotOwnerError):
            await bank.revoke(SECOND.address, CID)
        await bank.revoke(THIRD.address, CID)

        with pytest.raises(ChequeRevokedError):
            await bank.redeem_sign_over(THIRD.address, authorize(), two_hop_chain())


# ══════════════════════════════════════════════════════════════════════
#  REDEEM
# ══════════════════════════════════════════════════════════════════════


class TestRedeem:

    @pytest.mark.asyncio
    async def test_redeem_twice(self):
        bank = await issued_bank()
        await bank.redeem(PAYEE.address, authorize())
        with pytest.raises(ChequeRedeemedError, match="Cheque id redeemed"):
            await bank.redeem(PAYEE.address, authorize())
        assert bank.balance_of(PAYER.address) == 19 * ONE_ETHER
        assert bank.pending_withdrawal_of(PAYEE.address) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_anyone_may_submit(self):
        bank = await issued_bank()
        event = await bank.redeem(STRANGER.address, authorize())
        assert event.redeemed_by == STRANGER.address
        assert bank.pending_withdrawal_of(PAYEE.address) == ONE_ETHER
        assert bank.pending_withdrawal_of(STRANGER.address) == 0

    @pytest.mark.asyncio
    async def test_unknown_cheque(self):
        bank = make_bank()
        await bank.deposit(PAYER.address, ONE_ETHER)
        with pytest.raises(ChequeNotFoundError):
            await bank.redeem(PAYEE.address, authorize())

    @pytest.mark.asyncio
    async def test_not_enough_money(self):
        bank = await issued_bank(balance=ONE_ETHER // 2)
        before = state_of(bank)
        with pytest.raises(InsufficientFundsError, match="Not enough money"):
            await bank.redeem(PAYEE.address, authorize())
        assert state_of(bank) == before

        await bank.deposit(PAYER.address, ONE_ETHER)
        await bank.redeem(PAYEE.address, authorize())
        assert bank.balance_of(PAYER.address) == ONE_ETHER // 2

    @pytest.mark.asyncio
    async def test_signature_by_someone_else(self):
        bank = await issued_bank()
        forged = sign_cheque(
            STRANGER, cheque_id=CID, payee=PAYEE.address, amount=ONE_ETHER, ledger=LEDGER,
        )
        with pytest.raises(InvalidChequeError):
            await bank.redeem(PAYEE.address, forged)

    @pytest.mark.asyncio
    async def test_terms_with_swapped_signature(self):
        bank = await issued_bank()
        genuine = authorize()
        other = sign_cheque(
            PAYER, cheque_id=cheque_id_from_string("2"), payee=PAYEE.address, amount=ONE_ETHER, ledger=LEDGER,
        )
        swapped = type(genuine)(terms=genuine.terms, signature=other.signature)
        with pytest.raises(BadSignatureError, match="Invalid cheque"):
            await bank.redeem(PAYEE.address, swapped)
        assert bank.cheque_status(CID) == ChequeStatus.ISSUED

    @pytest.mark.asyncio
    async def test_drawn_on_other_ledger(self):
        bank = await issued_bank()
        with pytest.raises(InvalidChequeError, match="Invalid cheque"):
            await bank.redeem(PAYEE.address, authorize(ledger=OTHER_LEDGER))

    @pytest.mark.asyncio
    async def test_window_boundaries_are_inclusive(self):
        bank = await issued_bank(valid_from=NOW - 10, valid_thru=NOW + 10)
        await bank.redeem(PAYEE.address, authorize(valid_from=NOW - 10, valid_thru=NOW + 10), now=NOW + 10)
        assert bank.cheque_status(CID) == ChequeStatus.REDEEMED

    @pytest.mark.asyncio
    async def test_explicit_now(self):
        bank = await issued_bank(valid_from=NOW + 100)
        with pytest.raises(TimingError):
            await bank.redeem(PAYEE.address, authorize(valid_from=NOW + 100), now=NOW + 99)
        await bank.redeem(PAYEE.address, authorize(valid_from=NOW + 100), now=NOW + 100)

    @pytest.mark.asyncio
    async def test_terminal_check_precedes_signature(self):
        bank = await issued_bank()
        await bank.revoke(PAYER.address, CID)
        with pytest.raises(ChequeRevokedError):
            await bank.redeem(PAYEE.address, authorize(amount=5))

    @pytest.mark.asyncio
    async def test_plain_redeem_after_sign_over(self):
        bank = await signed_over_bank(two_hop_chain()[:1])
        with pytest.raises(ChequeSignedOverError, match="Cheque has signed over"):
            await bank.redeem(PAYEE.address, authorize())
        assert bank.balance_of(PAYER.address) == 20 * ONE_ETHER


# ══════════════════════════════════════════════════════════════════════
#  SIGN-OVER
# ══════════════════════════════════════════════════════════════════════


class TestSignOver:

    @pytest.mark.asyncio
    async def test_notify_updates_tail(self):
        bank = await issued_bank()
        tail = await bank.notify_sign_over(PAYEE.address, two_hop_chain()[0])
        assert tail.counter == 1
        assert tail.payee == SECOND.address
        assert bank.sign_over_tail(CID) == tail

    @pytest.mark.asyncio
    async def test_notify_unissued_cheque(self):
        with pytest.raises(ChequeNotFoundError):
            await make_bank().notify_sign_over(PAYEE.address, two_hop_chain()[0])

    @pytest.mark.asyncio
    async def test_notify_redeemed_cheque(self):
        bank = await issued_bank()
        await bank.redeem(PAYEE.address, authorize())
        with pytest.raises(ChequeRedeemedError):
            await bank.notify_sign_over(PAYEE.address, two_hop_chain()[0])

    @pytest.mark.asyncio
    async def test_notify_wrong_counter(self):
        bank = await issued_bank()
        skipped = sign_over(PAYEE, cheque_id=CID, counter=2, new_payee=SECOND.address)
        with pytest.raises(InvalidSequenceError):
            await bank.notify_sign_over(PAYEE.address, skipped)
        assert bank.sign_over_tail(CID) is None

    @pytest.mark.asyncio
    async def test_notify_unconnected_link(self):
        bank = await signed_over_bank(two_hop_chain()[:1])
        stray = sign_over(STRANGER, cheque_id=CID, counter=2, new_payee=THIRD.address)
        with pytest.raises(InvalidSequenceError):
            await bank.notify_sign_over(STRANGER.address, stray)
        assert bank.sign_over_tail(CID).payee == SECOND.address

    @pytest.mark.asyncio
    async def test_notify_bad_signature(self):
        bank = await issued_bank()
        link = two_hop_chain()[0]
        forged = type(link)(terms=link.terms, signature=sign_over(
            STRANGER, cheque_id=CID, counter=1, new_payee=SECOND.address,
        ).signature)
        with pytest.raises(BadSignatureError):
            await bank.notify_sign_over(STRANGER.address, forged)

    @pytest.mark.asyncio
    async def test_redeem_sign_over_without_notify(self):
        bank = await issued_bank()
        with pytest.raises(InvalidChainError, match="Cheque has not signed over"):
            await bank.redeem_sign_over(THIRD.address, authorize(), two_hop_chain())

    @pytest.mark.asyncio
    async def test_redeem_stale_chain(self):
        chain = two_hop_chain()
        bank = await signed_over_bank(chain)
        with pytest.raises(InvalidChainError, match="Cheque has signed over again"):
            await bank.redeem_sign_over(SECOND.address, authorize(), chain[:1])

    @pytest.mark.asyncio
    async def test_redeem_sign_over_checks_payer_signature(self):
        chain = two_hop_chain()
        bank = await signed_over_bank(chain)
        with pytest.raises(InvalidChequeError):
            await bank.redeem_sign_over(THIRD.address, authorize(amount=2 * ONE_ETHER), chain)
        assert bank.pending_withdrawal_of(THIRD.address) == 0

    @pytest.mark.asyncio
    async def test_redeem_sign_over_not_enough_money(self):
        chain = two_hop_chain()
        bank = await issued_bank(balance=0)
        for link in chain:
            await bank.notify_sign_over(THIRD.address, link)
        with pytest.raises(InsufficientFundsError, match="Not enough money"):
            await bank.redeem_sign_over(THIRD.address, authorize(), chain)
        assert bank.cheque_status(CID) == ChequeStatus.ISSUED


# ══════════════════════════════════════════════════════════════════════
#  BALANCES
# ══════════════════════════════════════════════════════════════════════


class TestBalances:

    @pytest.mark.asyncio
    async def test_deposit_and_withdraw(self):
        bank = make_bank()
        assert await bank.deposit(PAYER.address, 5) == 5
        assert await bank.deposit(PAYER.address, 5) == 10
        assert await bank.withdraw(PAYER.address, 3) == 7
        assert bank.balance_of(PAYER.address) == 7
        assert bank.rail.external_balance_of(PAYER.address) == -7

    @pytest.mark.asyncio
    async def test_deposit_zero(self):
        with pytest.raises(ZeroAmountError, match="Deposit must be bigger than 0"):
            await make_bank().deposit(PAYER.address, 0)

    @pytest.mark.asyncio
    async def test_withdraw_zero(self):
        with pytest.raises(ZeroAmountError, match="Withdraw must be bigger than 0"):
            await make_bank().withdraw(PAYER.address, 0)

    @pytest.mark.asyncio
    async def test_withdraw_more_than_balance(self):
        bank = make_bank()
        await bank.deposit(PAYER.address, 5)
        with pytest.raises(InsufficientBalanceError, match="Withdraw must be less than your balance"):
            await bank.withdraw(PAYER.address, 6)
        assert bank.balance_of(PAYER.address) == 5

    @pytest.mark.asyncio
    async def test_amount_must_be_int(self):
        bank = make_bank()
        with pytest.raises(ValidationError):
            await bank.deposit(PAYER.address, 1.5)
        with pytest.raises(ValidationError):
            await bank.deposit(PAYER.address, True)

    @pytest.mark.asyncio
    async def test_strict_rail_rejects_unfunded_deposit(self):
        bank = make_bank(InMemoryRail(strict=True))
        with pytest.raises(InsufficientFundsError):
            await bank.deposit(PAYER.address, 5)
        assert bank.balance_of(PAYER.address) == 0

    @pytest.mark.asyncio
    async def test_failed_payout_restores_balance(self):
        bank = make_bank(FailingRail())
        await bank.deposit(PAYER.address, 5)
        with pytest.raises(ConnectionError):
            await bank.withdraw(PAYER.address, 5)
        assert bank.balance_of(PAYER.address) == 5
        assert not any(isinstance(e, Withdrawn) for e in bank.events)


class TestWithdrawTo:

    @pytest.mark.asyncio
    async def test_nothing_pending(self):
        with pytest.raises(InsufficientPendingError):
            await make_bank().withdraw_to(PAYEE.address, 1, PAYEE.address)

    @pytest.mark.asyncio
    async def test_partial_payout_to_other_recipient(self):
        bank = await issued_bank()
        await bank.redeem(PAYEE.address, authorize())

        remaining = await bank.withdraw_to(PAYEE.address, ONE_ETHER // 4, STRANGER.address)
        assert remaining == 3 * ONE_ETHER // 4
        assert bank.pending_withdrawal_of(PAYEE.address) == remaining
        assert bank.rail.external_balance_of(STRANGER.address) == ONE_ETHER // 4

    @pytest.mark.asyncio
    async def test_more_than_pending(self):
        bank = await issued_bank()
        await bank.redeem(PAYEE.address, authorize())
        with pytest.raises(InsufficientPendingError):
            await bank.withdraw_to(PAYEE.address, ONE_ETHER + 1, PAYEE.address)
        assert bank.pending_withdrawal_of(PAYEE.address) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_only_owner_drains_bucket(self):
        bank = await issued_bank()
        await bank.redeem(PAYEE.address, authorize())
        with pytest.raises(InsufficientPendingError):
            await bank.withdraw_to(STRANGER.address, ONE_ETHER, STRANGER.address)
        assert bank.pending_withdrawal_of(PAYEE.address) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_failed_payout_restores_pending(self):
        bank = await issued_bank(rail=FailingRail())
        await bank.redeem(PAYEE.address, authorize())
        with pytest.raises(ConnectionError):
            await bank.withdraw_to(PAYEE.address, ONE_ETHER, PAYEE.address)
        assert bank.pending_withdrawal_of(PAYEE.address) == ONE_ETHER


# ══════════════════════════════════════════════════════════════════════
#  PRE-FLIGHT VALIDATION
# ══════════════════════════════════════════════════════════════════════


class TestIsChequeValid:

    def test_unissued_with_payer_signature(self):
        assert make_bank().is_cheque_valid(authorize())

    def test_unissued_other_ledger(self):
        assert not make_bank().is_cheque_valid(authorize(ledger=OTHER_LEDGER))

    def test_unissued_with_chain(self):
        assert not make_bank().is_cheque_valid(authorize(), two_hop_chain())

    @pytest.mark.asyncio
    async def test_issued(self):
        bank = await issued_bank()
        assert bank.is_cheque_valid(authorize())
        assert not bank.is_cheque_valid(authorize(amount=2 * ONE_ETHER))

    @pytest.mark.asyncio
    async def test_ignores_funds_and_time(self):
        bank = await issued_bank(balance=0, valid_thru=1)
        assert bank.is_cheque_valid(authorize(valid_thru=1))

    @pytest.mark.asyncio
    async def test_redeemed(self):
        bank = await issued_bank()
        await bank.redeem(PAYEE.address, authorize())
        assert not bank.is_cheque_valid(authorize())

    @pytest.mark.asyncio
    async def test_signed_over(self):
        chain = two_hop_chain()
        bank = await signed_over_bank(chain)
        assert not bank.is_cheque_valid(authorize())
        assert not bank.is_cheque_valid(authorize(), chain[:1])
        assert bank.is_cheque_valid(authorize(), chain)


# ══════════════════════════════════════════════════════════════════════
#  CONCURRENCY
# ══════════════════════════════════════════════════════════════════════


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_double_redeem_settles_once(self):
        bank = await issued_bank()
        results = await asyncio.gather(
            bank.redeem(PAYEE.address, authorize()),
            bank.redeem(STRANGER.address, authorize()),
            return_exceptions=True,
        )
        assert sum(isinstance(r, ChequeRedeemed) for r in results) == 1
        assert sum(isinstance(r, ChequeRedeemedError) for r in results) == 1
        assert bank.balance_of(PAYER.address) == 19 * ONE_ETHER
        assert bank.pending_withdrawal_of(PAYEE.address) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_competing_cheques_cannot_overdraw(self):
        bank = make_bank()
        await bank.deposit(PAYER.address, ONE_ETHER)
        ids = [cheque_id_from_string(str(i)) for i in range(2)]
        for cid in ids:
            await bank.issue_cheque(PAYER.address, cid, PAYEE.address, ONE_ETHER)

        results = await asyncio.gather(
            *(bank.redeem(PAYEE.address, authorize(cheque_id=cid)) for cid in ids),
            return_exceptions=True,
        )
        assert sum(isinstance(r, ChequeRedeemed) for r in results) == 1
        assert sum(isinstance(r, InsufficientFundsError) for r in results) == 1
        assert bank.balance_of(PAYER.address) == 0

    @pytest.mark.asyncio
    async def test_concurrent_deposits(self):
        bank = make_bank()
        await asyncio.gather(*(bank.deposit(PAYER.address, 1) for _ in range(50)))
        assert bank.balance_of(PAYER.address) == 50

    @pytest.mark.asyncio
    async def test_lock_map_returns_to_baseline(self):
        bank = await issued_bank()
        baseline = len(bank._locks)
        for i in range(500):
            with pytest.raises(ChequeNotFoundError):
                await bank.redeem(PAYEE.address, authorize(cheque_id=cheque_id_from_string(f"unknown-{i}")))
        assert len(bank._locks) == baseline == 0

        await bank.redeem(PAYEE.address, authorize())
        assert len(bank._locks) == 0


# ══════════════════════════════════════════════════════════════════════
#  EVENTS & VIEWS
# ══════════════════════════════════════════════════════════════════════


class TestEvents:

    @pytest.mark.asyncio
    async def test_event_trail(self):
        chain = two_hop_chain()
        bank = await signed_over_bank(chain)
        await bank.redeem_sign_over(THIRD.address, authorize(), chain)
        await bank.withdraw_to(THIRD.address, ONE_ETHER, THIRD.address)

        kinds = [type(e) for e in bank.events]
        assert kinds == [
            Deposited, ChequeIssued, SignOverNotified, SignOverNotified, ChequeRedeemed, WithdrawnTo,
        ]
        redeemed = bank.events[4].to_dict()
        assert redeemed["event"] == "ChequeRedeemed"
        assert redeemed["chequeId"] == cheque_id_hex(CID)
        assert redeemed["payee"] == THIRD.address
        assert redeemed["amount"] == str(ONE_ETHER)

    @pytest.mark.asyncio
    async def test_failed_calls_emit_nothing(self):
        bank = await issued_bank()
        count = len(bank.events)
        with pytest.raises(NotOwnerError):
            await bank.revoke(STRANGER.address, CID)
        with pytest.raises(InvalidChequeError):
            await bank.redeem(PAYEE.address, authorize(amount=3))
        assert len(bank.events) == count

    @pytest.mark.asyncio
    async def test_event_trail_is_bounded(self):
        bank = ChequeBank(LEDGER, clock=lambda: NOW, event_history=3)
        for amount in range(1, 6):
            await bank.deposit(PAYER.address, amount)
        assert [e.amount for e in bank.events] == [3, 4, 5]

    @pytest.mark.asyncio
    async def test_drain_events(self):
        bank = await issued_bank()
        drained = bank.drain_events()
        assert [type(e) for e in drained] == [Deposited, ChequeIssued]
        assert bank.events == []
        await bank.revoke(PAYER.address, CID)
        assert [type(e) for e in bank.drain_events()] == [ChequeRevoked]

    @pytest.mark.asyncio
    async def test_revoke_event(self):
        bank = await issued_bank()
        await bank.revoke(PAYER.address, CID)
        assert bank.events[-1] == ChequeRevoked(
            cheque_id=cheque_id_hex(CID), revoked_by=PAYER.address, timestamp=bank.events[-1].timestamp,
        )

    @pytest.mark.asyncio
    async def test_to_dict(self):
        bank = await signed_over_bank(two_hop_chain()[:1])
        state = bank.to_dict()
        assert state["address"] == LEDGER
        assert state["balances"] == {PAYER.address: str(20 * ONE_ETHER)}
        assert state["pendingWithdrawals"] == {}
        assert state["cheques"][cheque_id_hex(CID)]["status"] == "ISSUED"
        assert state["signOvers"][cheque_id_hex(CID)] == {"counter": 1, "payee": SECOND.address}
