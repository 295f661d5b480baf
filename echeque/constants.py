"""
E-Cheque Ledger Constants

This module consolidates protocol constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LEDGER_DEFAULTS = {
    'ECHEQUE_LEDGER_ADDRESS':          '0x0000000000000000000000000000000000000000',
    'ECHEQUE_DB_PATH':                 'data/echeque.db',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW ARE PART OF THE SIGNED WIRE FORMAT. CHANGING THEM
# INVALIDATES EVERY AUTHORIZATION AND SIGN-OVER ASSERTION PRODUCED BY EXISTING SIGNERS.

# ==================================================================================
# CORE PROTOCOL CONSTANTS
# ==================================================================================
LEDGER_VERSION = '1.0.0'

# Tag prefixed to every sign-over hash so that a sign-over signature can never
# be replayed as a redemption authorization.
SIGN_OVER_MAGIC = 0xFFFFDEAD

# Prefix applied by personal_sign before the 32-byte hash is signed
PERSONAL_SIGN_PREFIX = b'\x19Ethereum Signed Message:\n32'


# ==================================================================================
# ABI TYPE LAYOUTS
# ==================================================================================
REDEMPTION_HASH_TYPES = ('bytes32', 'address', 'address', 'uint256', 'uint32', 'uint32', 'address')
SIGN_OVER_HASH_TYPES = ('uint32', 'uint8', 'bytes32', 'address', 'address')


# ==================================================================================
# NUMERIC BOUNDS
# ==================================================================================
CHEQUE_ID_LENGTH = 32
MAX_UINT8 = 2 ** 8 - 1
MAX_UINT32 = 2 ** 32 - 1
MAX_UINT256 = 2 ** 256 - 1

# Sign-over counters are uint8 and start at 1
MAX_SIGN_OVER_CHAIN = MAX_UINT8

# Most recent events kept in memory by a ChequeBank; older ones are dropped
EVENT_HISTORY_LIMIT = 10_000

# secp256k1 group order, upper bound for the r and s signature components
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LEDGER_DEFAULTS | LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
