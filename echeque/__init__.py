"""
E-Cheque Ledger Package

Core imports are lazily loaded so that the CLI and the signing helpers do not
pull in the storage layer. For direct module access, import from submodules:

    from echeque.bank import ChequeBank
    from echeque.cheques import sign_cheque, sign_over
    from echeque.exceptions import EChequeError
"""

from .constants import LEDGER_VERSION

__version__ = LEDGER_VERSION


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'ChequeBank':
        from .bank import ChequeBank
        return ChequeBank
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'EChequeError':
        from .exceptions import EChequeError
        return EChequeError
    raise AttributeError(f"module 'echeque' has no attribute {name!r}")

__all__ = ['ChequeBank', 'load_config', 'EChequeError']
