"""
E-Cheque Exceptions

Error taxonomy for the ledger. Every failure is raised synchronously from the
attempted call; callers catch either the taxonomy class (ValidationError,
AuthorizationError, ...) or the specific reason beneath it.
"""


class EChequeError(Exception):
    """Base exception for the e-cheque ledger."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  TAXONOMY
# ══════════════════════════════════════════════════════════════════════

class ValidationError(EChequeError):
    """Malformed input: zero amounts, bad encodings, out-of-range fields."""
    pass


class NotFoundError(EChequeError):
    """Referenced entity does not exist."""
    pass


class StateConflictError(EChequeError):
    """Illegal status transition."""
    pass


class AuthorizationError(EChequeError):
    """Signature, ownership or custody-chain mismatch."""
    pass


class TimingError(EChequeError):
    """Operation attempted outside the cheque validity window."""
    pass


class InsufficientFundsError(EChequeError):
    """Balance or pending-withdrawal shortfall."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════

class ZeroAmountError(ValidationError):
    """Amount must be strictly positive."""


class InvalidAddressError(ValidationError):
    """Identity is not a valid 20-byte address."""


class InvalidChequeIdError(ValidationError):
    """Cheque id is not a 32-byte value."""


class MalformedSignatureError(ValidationError):
    """Signature encoding or component range is invalid."""


# ══════════════════════════════════════════════════════════════════════
#  NOT FOUND / STATE
# ══════════════════════════════════════════════════════════════════════

class ChequeNotFoundError(NotFoundError):
    """Cheque id was never issued."""


class ChequeExistsError(StateConflictError):
    """Cheque id is already in use."""


class ChequeRedeemedError(StateConflictError):
    """Cheque has already been redeemed."""


class ChequeRevokedError(StateConflictError):
    """Cheque has been revoked."""


# ══════════════════════════════════════════════════════════════════════
#  AUTHORIZATION
# ══════════════════════════════════════════════════════════════════════

class BadSignatureError(AuthorizationError):
    """Recovered signer does not match the expected identity."""


class InvalidChequeError(AuthorizationError):
    """Presented cheque terms do not match the registered cheque."""


class NotOwnerError(AuthorizationError):
    """Caller does not hold custody of the cheque."""


class ChequeSignedOverError(AuthorizationError):
    """Cheque has been signed over; the full chain must be presented."""


class InvalidSequenceError(AuthorizationError):
    """Sign-over notification does not extend the notified chain."""


class InvalidChainError(AuthorizationError):
    """Presented sign-over chain does not match the notified chain."""


# ══════════════════════════════════════════════════════════════════════
#  TIMING / FUNDS
# ══════════════════════════════════════════════════════════════════════

class ChequeNotStartedError(TimingError):
    """Redemption attempted before valid_from."""


class ChequeExpiredError(TimingError):
    """Redemption attempted after valid_thru."""


class InsufficientBalanceError(InsufficientFundsError):
    """Account balance is lower than the requested withdrawal."""


class InsufficientPendingError(InsufficientFundsError):
    """Pending-withdrawal bucket is lower than the requested payout."""


# ══════════════════════════════════════════════════════════════════════
#  AMBIENT
# ══════════════════════════════════════════════════════════════════════

class ConfigurationError(EChequeError):
    """Configuration error."""
    pass


class StorageError(EChequeError):
    """State store could not be read or written."""
    pass
