"""
E-Cheque TOML Configuration Loader

Loads echeque.toml with environment variable overrides. Every section is a
dataclass with from_dict() and apply_env().

Environment variable mapping:
    [ledger] address        → ECHEQUE_LEDGER_ADDRESS
    [storage] path          → ECHEQUE_DB_PATH
    [logging] level         → ECHEQUE_LOG_LEVEL
    [logging] file_output   → ECHEQUE_LOG_FILE_OUTPUT

Defaults come from echeque.constants, which in turn reads .env.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import ECHEQUE_DB_PATH, ECHEQUE_LEDGER_ADDRESS, LOG_FILE_OUTPUT, LOG_LEVEL
from ..crypto import is_valid_address
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class LedgerSectionConfig:
    """[ledger] section."""
    address: str = str(ECHEQUE_LEDGER_ADDRESS)
    strict_rail: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerSectionConfig":
        return cls(
            address=data.get("address", str(ECHEQUE_LEDGER_ADDRESS)),
            strict_rail=data.get("strict_rail", False),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ECHEQUE_LEDGER_ADDRESS"):
            self.address = v


@dataclass
class StorageConfig:
    """[storage] section."""
    path: str = str(ECHEQUE_DB_PATH)
    wal_mode: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageConfig":
        return cls(
            path=data.get("path", str(ECHEQUE_DB_PATH)),
            wal_mode=data.get("wal_mode", True),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ECHEQUE_DB_PATH"):
            self.path = v


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = str(LOG_LEVEL)
    file_output: bool = bool(LOG_FILE_OUTPUT)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=data.get("level", str(LOG_LEVEL)),
            file_output=data.get("file_output", bool(LOG_FILE_OUTPUT)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ECHEQUE_LOG_LEVEL"):
            self.level = v
        if v := os.environ.get("ECHEQUE_LOG_FILE_OUTPUT"):
            self.file_output = _env_bool(v)


@dataclass
class EChequeConfig:
    """
    Ledger service configuration.

    This is the single source of truth at runtime: ChequeBank.from_config()
    reads [ledger] and [logging], SQLiteStateStore.from_config() reads
    [storage].
    """
    ledger: LedgerSectionConfig = field(default_factory=LedgerSectionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EChequeConfig":
        """Create EChequeConfig from a parsed TOML dict."""
        return cls(
            ledger=LedgerSectionConfig.from_dict(data.get("ledger", {})),
            storage=StorageConfig.from_dict(data.get("storage", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "EChequeConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with env overrides applied).

        Raises:
            ConfigurationError: If the file is not valid TOML
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.ledger.apply_env()
        self.storage.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Raises:
            ConfigurationError: on invalid config
        """
        if not is_valid_address(self.ledger.address):
            raise ConfigurationError(f"Invalid ledger address: {self.ledger.address}")
        if self.logging.level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        if not self.storage.path:
            raise ConfigurationError("Storage path must not be empty")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "ledger": {
                "address": self.ledger.address,
                "strict_rail": self.ledger.strict_rail,
            },
            "storage": {
                "path": self.storage.path,
                "wal_mode": self.storage.wal_mode,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
            },
        }


def load_config(path: Optional[str] = None) -> EChequeConfig:
    """
    Load ledger configuration.

    Resolution order:
        1. Explicit *path* argument
        2. ECHEQUE_CONFIG env var
        3. ./echeque.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("ECHEQUE_CONFIG", "echeque.toml")

    return EChequeConfig.from_file(path)
