"""
E-Cheque Bank

The ledger service. One ChequeBank instance owns every keyed map (cheques,
custody chain tails, balances, pending withdrawals) and is the only way to
mutate them:

    issue_cheque → notify_sign_over* → redeem | redeem_sign_over → withdraw_to

Every mutating coroutine holds the per-entity locks of what it touches, runs
all of its checks, and only then mutates. A failing call leaves no trace.
"""

import time
from collections import deque
from dataclasses import replace
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Union

from .cheques.authorization import AuthorizationVerifier, redemption_hash
from .cheques.registry import ChequeRegistry
from .cheques.signover import SignOverTracker
from .cheques.types import (
    Cheque,
    ChequeStatus,
    RedemptionAuthorization,
    SignOverAssertion,
    SignOverTail,
    cheque_id_hex,
    normalize_cheque_id,
)
from .constants import EVENT_HISTORY_LIMIT, MAX_UINT256
from .crypto import normalize_address
from .events import (
    ChequeIssued,
    ChequeRedeemed,
    ChequeRevoked,
    Deposited,
    SignOverNotified,
    Withdrawn,
    WithdrawnTo,
)
from .exceptions import (
    ChequeExpiredError,
    ChequeNotStartedError,
    EChequeError,
    InsufficientBalanceError,
    InsufficientFundsError,
    InvalidChainError,
    InvalidChequeError,
    StorageError,
    ValidationError,
    ZeroAmountError,
)
from .ledger import AccountLedger, InMemoryRail, PendingWithdrawalQueue, SettlementRail
from .locks import KeyedLocks, account_key, cheque_key, pending_key
from .logger import configure_logging, get_logger
from .storage import LedgerSnapshot, SQLiteStateStore

logger = get_logger(__name__)

ChequeIdLike = Union[bytes, str]


def _require_amount(amount: int, message: str) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationError("Amount must be an integer number of wei")
    if amount <= 0:
        raise ZeroAmountError(message)
    if amount > MAX_UINT256:
        raise ValidationError("Amount exceeds uint256")
    return amount


class ChequeBank:
    """
    E-cheque ledger service.

    Args:
        address: Identifier of this ledger instance. It is part of every
            redemption hash, so authorizations cannot be replayed across
            instances.
        rail: Moves value in on deposit and out on withdraw/withdraw_to.
            Defaults to an InMemoryRail.
        clock: Returns the current Unix time in seconds; used for validity
            windows when redemption is not given an explicit ``now``.
        event_history: Number of most recent events kept in memory. Older
            events are dropped; callers that need all of them should call
            drain_events() regularly.
    """

    def __init__(
        self,
        address: str,
        rail: Optional[SettlementRail] = None,
        clock: Optional[Callable[[], int]] = None,
        event_history: int = EVENT_HISTORY_LIMIT,
    ):
        self.address = normalize_address(address)
        self.rail = rail if rail is not None else InMemoryRail()

        self.verifier = AuthorizationVerifier(self.address)
        self.registry = ChequeRegistry()
        self.sign_overs = SignOverTracker(self.verifier)
        self.accounts = AccountLedger()
        self.pending = PendingWithdrawalQueue()

        self._clock = clock or time.time
        self._locks = KeyedLocks()
        self._events: Deque[Any] = deque(maxlen=event_history)

        logger.info(f"E-cheque ledger ready at {self.address}")

    @classmethod
    def from_config(cls, config, rail: Optional[SettlementRail] = None, clock=None) -> "ChequeBank":
        """Build a ledger from an EChequeConfig."""
        config.validate()
        configure_logging(config.logging.level, config.logging.file_output)
        if rail is None:
            rail = InMemoryRail(strict=config.ledger.strict_rail)
        return cls(config.ledger.address, rail=rail, clock=clock)

    # ── Read-only views ───────────────────────────────────────────────

    def balance_of(self, identity: str) -> int:
        return self.accounts.balance_of(normalize_address(identity))

    def pending_withdrawal_of(self, identity: str) -> int:
        return self.pending.pending_of(normalize_address(identity))

    def cheque_status(self, cheque_id: ChequeIdLike) -> ChequeStatus:
        return self.registry.status(normalize_cheque_id(cheque_id))

    def get_cheque(self, cheque_id: ChequeIdLike) -> Optional[Cheque]:
        cheque = self.registry.get(normalize_cheque_id(cheque_id))
        return replace(cheque) if cheque else None

    def sign_over_tail(self, cheque_id: ChequeIdLike) -> Optional[SignOverTail]:
        return self.sign_overs.tail(normalize_cheque_id(cheque_id))

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def drain_events(self) -> List[Any]:
        """Return the recorded events and clear the trail."""
        drained = list(self._events)
        self._events.clear()
        return drained

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "cheques": self.registry.to_dict(),
            "signOvers": {cheque_id_hex(cid): tail.to_dict() for cid, tail in self.sign_overs.items()},
            "balances": self.accounts.to_dict(),
            "pendingWithdrawals": self.pending.to_dict(),
        }

    # ── Helpers ───────────────────────────────────────────────────────

    def _now(self, now: Optional[int]) -> int:
        return int(now) if now is not None else int(self._clock())

    @staticmethod
    def _check_window(cheque: Cheque, now: int) -> None:
        if cheque.valid_from and now < cheque.valid_from:
            raise ChequeNotStartedError("The cheque not start yet")
        if cheque.valid_thru and now > cheque.valid_thru:
            raise ChequeExpiredError("The cheque expired")

    def _settle(self, cheque: Cheque, payee: str, caller: str, chain_length: int) -> ChequeRedeemed:
        if not self.accounts.has_funds(cheque.payer, cheque.amount):
            raise InsufficientFundsError("Not enough money")

        self.accounts.debit(cheque.payer, cheque.amount)
        self.pending.credit(payee, cheque.amount)
        self.registry.mark_redeemed(cheque.cheque_id)

        event = ChequeRedeemed(
            cheque_id=cheque_id_hex(cheque.cheque_id),
            payer=cheque.payer,
            payee=payee,
            amount=cheque.amount,
            redeemed_by=caller,
            chain_length=chain_length,
        )
        self._events.append(event)
        logger.info(
            f"Cheque {cheque_id_hex(cheque.cheque_id)} REDEEMED: {cheque.amount} wei "
            f"from {cheque.payer} to {payee}"
        )
        return event

    # ── Cheque lifecycle ──────────────────────────────────────────────

    async def issue_cheque(
        self,
        caller: str,
        cheque_id: ChequeIdLike,
        payee: str,
        amount: int,
        valid_from: int = 0,
        valid_thru: int = 0,
    ) -> Cheque:
        """
        Register a cheque drawn by *caller* in favour of *payee*.

        The payer's balance is not checked or reserved here.

        Raises:
            ChequeExistsError: If the id was already issued
            ValidationError: On a bad amount, address or validity window
        """
        payer = normalize_address(caller)
        payee = normalize_address(payee)
        cid = normalize_cheque_id(cheque_id)
        _require_amount(amount, "Cheque amount must be bigger than 0")

        async with self._locks.hold(cheque_key(cid)):
            cheque = self.registry.issue(
                cid, payer, payee, amount, valid_from, valid_thru, now=int(self._clock()),
            )
            self._events.append(ChequeIssued(
                cheque_id=cheque_id_hex(cid),
                payer=payer,
                payee=payee,
                amount=amount,
                valid_from=valid_from,
                valid_thru=valid_thru,
            ))

        logger.info(f"Cheque {cheque_id_hex(cid)} ISSUED: {amount} wei from {payer} to {payee}")
        return replace(cheque)

    async def revoke(self, caller: str, cheque_id: ChequeIdLike) -> Cheque:
        """
        Revoke an issued cheque.

        Only the custodian may revoke: the payer while no sign-over has been
        notified, afterwards the payee named by the latest notified sign-over.

        Raises:
            ChequeNotFoundError, ChequeRedeemedError, ChequeRevokedError, NotOwnerError
        """
        caller = normalize_address(caller)
        cid = normalize_cheque_id(cheque_id)

        async with self._locks.hold(cheque_key(cid)):
            cheque = self.registry.require_issued(cid)
            cheque = self.registry.revoke(cid, caller, custodian=self.sign_overs.custodian(cheque))
            self._events.append(ChequeRevoked(cheque_id=cheque_id_hex(cid), revoked_by=caller))

        logger.info(f"Cheque {cheque_id_hex(cid)} REVOKED by {caller}")
        return replace(cheque)

    async def notify_sign_over(self, caller: str, assertion: SignOverAssertion) -> SignOverTail:
        """
        Record a custody transfer. Anyone holding a valid assertion may notify it.

        Raises:
            ChequeNotFoundError: If the cheque was never issued
            ChequeRedeemedError, ChequeRevokedError: If the cheque is terminal
            BadSignatureError: If the old payee did not sign the assertion
            InvalidSequenceError: If the assertion does not extend the notified chain
        """
        caller = normalize_address(caller)
        cid = assertion.cheque_id

        async with self._locks.hold(cheque_key(cid)):
            cheque = self.registry.require_issued(cid)
            tail = self.sign_overs.notify(assertion, cheque)
            self._events.append(SignOverNotified(
                cheque_id=cheque_id_hex(cid),
                counter=tail.counter,
                old_payee=assertion.terms.old_payee,
                new_payee=tail.payee,
                notified_by=caller,
            ))

        logger.info(
            f"Cheque {cheque_id_hex(cid)} signed over #{tail.counter}: "
            f"{assertion.terms.old_payee} -> {tail.payee}"
        )
        return tail

    async def redeem(
        self,
        caller: str,
        authorization: RedemptionAuthorization,
        now: Optional[int] = None,
    ) -> ChequeRedeemed:
        """
        Settle a cheque that was never signed over.

        Debits the payer and credits the original payee's pending withdrawal.

        Raises:
            ChequeNotFoundError: Unknown cheque id
            ChequeRedeemedError, ChequeRevokedError: Cheque is terminal
            ChequeSignedOverError: A sign-over was notified; use redeem_sign_over
            InvalidChequeError, BadSignatureError: Terms or payer signature mismatch
            ChequeNotStartedError, ChequeExpiredError: Outside the validity window
            InsufficientFundsError: Payer balance below the cheque amount
        """
        caller = normalize_address(caller)
        terms = authorization.terms
        cid = terms.cheque_id

        async with self._locks.hold(cheque_key(cid), account_key(terms.payer), pending_key(terms.payee)):
            cheque = self.registry.require_issued(cid)
            self.sign_overs.require_not_signed_over(cid)
            self.verifier.verify_redemption(authorization, cheque)
            self._check_window(cheque, self._now(now))
            return self._settle(cheque, cheque.payee, caller, chain_length=0)

    async def redeem_sign_over(
        self,
        caller: str,
        authorization: RedemptionAuthorization,
        chain: Sequence[SignOverAssertion],
        now: Optional[int] = None,
    ) -> ChequeRedeemed:
        """
        Settle a signed-over cheque by presenting its full custody chain.

        The final new payee of the chain is credited.

        Raises:
            InvalidChainError: Nothing was notified, or the chain does not
                lead exactly to the notified tail
            plus everything redeem() raises apart from ChequeSignedOverError
        """
        caller = normalize_address(caller)
        chain = tuple(chain)
        terms = authorization.terms
        cid = terms.cheque_id
        claimed = chain[-1].terms.new_payee if chain else terms.payee

        async with self._locks.hold(cheque_key(cid), account_key(terms.payer), pending_key(claimed)):
            cheque = self.registry.require_issued(cid)
            payee = self.sign_overs.validate_chain(cheque, chain)
            self.verifier.verify_redemption(authorization, cheque)
            self._check_window(cheque, self._now(now))
            return self._settle(cheque, payee, caller, chain_length=len(chain))

    def is_cheque_valid(
        self,
        authorization: RedemptionAuthorization,
        chain: Sequence[SignOverAssertion] = (),
    ) -> bool:
        """
        Pre-flight check of an authorization and optional custody chain.

        Applies the redemption checks that do not depend on time or funds and
        reports the outcome instead of raising. A cheque that is not issued
        yet is judged on its signature alone.
        """
        try:
            self._validate(authorization, tuple(chain))
        except EChequeError as e:
            logger.debug(f"Cheque {cheque_id_hex(authorization.cheque_id)} not valid: {e}")
            return False
        return True

    def _validate(self, authorization: RedemptionAuthorization, chain: Sequence[SignOverAssertion]) -> None:
        terms = authorization.terms
        cheque = self.registry.get(terms.cheque_id)

        if cheque is None:
            if terms.ledger != self.address:
                raise InvalidChequeError(f"Invalid cheque: drawn on ledger {terms.ledger}")
            self.verifier.verify(redemption_hash(terms), authorization.signature, terms.payer)
            if chain:
                raise InvalidChainError("Cheque has not signed over")
            return

        self.registry.require_issued(cheque.cheque_id)
        if chain:
            self.sign_overs.validate_chain(cheque, chain)
        else:
            self.sign_overs.require_not_signed_over(cheque.cheque_id)
        self.verifier.verify_redemption(authorization, cheque)

    # ── Balances ──────────────────────────────────────────────────────

    async def deposit(self, caller: str, amount: int) -> int:
        """
        Collect *amount* through the rail and credit the caller.

        Returns:
            The caller's new balance
        """
        caller = normalize_address(caller)
        _require_amount(amount, "Deposit must be bigger than 0")

        async with self._locks.hold(account_key(caller)):
            await self.rail.collect(caller, amount)
            balance = self.accounts.credit(caller, amount)
            self._events.append(Deposited(account=caller, amount=amount))

        logger.debug(f"Deposit: {caller} +{amount} wei")
        return balance

    async def withdraw(self, caller: str, amount: int) -> int:
        """
        Debit the caller and pay *amount* out through the rail.

        Returns:
            The caller's new balance

        Raises:
            InsufficientBalanceError: If amount exceeds the balance
        """
        caller = normalize_address(caller)
        _require_amount(amount, "Withdraw must be bigger than 0")

        async with self._locks.hold(account_key(caller)):
            if amount > self.accounts.balance_of(caller):
                raise InsufficientBalanceError("Withdraw must be less than your balance")
            balance = self.accounts.debit(caller, amount)
            try:
                await self.rail.pay(caller, amount)
            except BaseException:
                self.accounts.credit(caller, amount)
                raise
            self._events.append(Withdrawn(account=caller, amount=amount))

        logger.debug(f"Withdraw: {caller} -{amount} wei")
        return balance

    async def withdraw_to(self, caller: str, amount: int, recipient: str) -> int:
        """
        Pay *amount* from the caller's pending withdrawal to *recipient*.

        Returns:
            What remains in the caller's pending withdrawal

        Raises:
            InsufficientPendingError: If amount exceeds the pending withdrawal
        """
        caller = normalize_address(caller)
        recipient = normalize_address(recipient)
        _require_amount(amount, "Withdraw must be bigger than 0")

        async with self._locks.hold(pending_key(caller)):
            remaining = self.pending.debit(caller, amount)
            try:
                await self.rail.pay(recipient, amount)
            except BaseException:
                self.pending.credit(caller, amount)
                raise
            self._events.append(WithdrawnTo(account=caller, recipient=recipient, amount=amount))

        logger.info(f"Payout: {amount} wei from pending of {caller} to {recipient}")
        return remaining

    # ── Persistence ───────────────────────────────────────────────────

    def snapshot(self) -> LedgerSnapshot:
        """Copy the keyed maps without awaiting, so the copy is consistent."""
        return LedgerSnapshot(
            ledger_address=self.address,
            cheques=[replace(c) for c in self.registry],
            tails=dict(self.sign_overs.items()),
            balances=dict(self.accounts.items()),
            pending=dict(self.pending.items()),
        )

    async def save(self, store: SQLiteStateStore) -> None:
        snapshot = self.snapshot()
        await store.save_snapshot(snapshot)
        logger.info(f"Ledger {self.address} saved to {store.db_path}")

    @classmethod
    async def load(
        cls,
        store: SQLiteStateStore,
        address: Optional[str] = None,
        rail: Optional[SettlementRail] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "ChequeBank":
        """
        Rebuild a ledger from *store*.

        An empty store yields a fresh ledger at *address*.

        Raises:
            StorageError: If the store is empty and no address is given, or
                it holds a different ledger than *address*
        """
        snapshot = await store.load_snapshot()
        if snapshot is None:
            if address is None:
                raise StorageError("State store is empty and no ledger address was given")
            return cls(address, rail=rail, clock=clock)

        if address is not None and normalize_address(address) != snapshot.ledger_address:
            raise StorageError(f"State store belongs to ledger {snapshot.ledger_address}")

        bank = cls(snapshot.ledger_address, rail=rail, clock=clock)
        for cheque in snapshot.cheques:
            bank.registry.restore(cheque)
        for cid, tail in snapshot.tails.items():
            bank.sign_overs.restore(cid, tail)
        for identity, balance in snapshot.balances.items():
            bank.accounts.restore(identity, balance)
        for identity, amount in snapshot.pending.items():
            bank.pending.restore(identity, amount)

        logger.info(
            f"Ledger {bank.address} loaded: {len(bank.registry)} cheques, "
            f"{len(snapshot.balances)} accounts"
        )
        return bank
