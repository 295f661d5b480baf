"""
E-Cheque Configuration

Loads echeque.toml at startup. Environment variables override TOML values.
"""

from .loader import (
    EChequeConfig,
    LedgerSectionConfig,
    StorageConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "EChequeConfig",
    "LedgerSectionConfig",
    "StorageConfig",
    "LoggingConfig",
    "load_config",
]
