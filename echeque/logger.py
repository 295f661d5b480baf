"""
E-Cheque Logging
================

Process-wide logging for the ledger: a rich console handler that highlights
addresses, cheque ids and amounts, plus an optional rotating log file.

Usage:
    >>> from echeque.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Ledger started")

Defaults come from .env (LOG_LEVEL, LOG_FILE_OUTPUT, ...); the [logging]
section of echeque.toml is applied with configure_logging().
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)

PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "echeque.log"

LEDGER_THEME = Theme({
    "echeque.address":        "cyan",
    "echeque.amount":         "bold white",
    "echeque.cheque_id":      "magenta",
    "echeque.status":         "bold yellow",
    "echeque.level_debug":    "bold dim",
    "echeque.level_info":     "bold green",
    "echeque.level_warning":  "bold yellow",
    "echeque.level_error":    "bold red",
    "echeque.level_critical": "bold red reverse",
    "echeque.logger_name":    "magenta",
    "echeque.timestamp":      "bold cyan",
})


class LogManager:
    """
    Singleton owning the handlers this package installs on the root logger.

    Only its own handlers are ever removed, so handlers added by a host
    application or a test runner survive reconfiguration.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._configured = False
                    cls._instance._handlers = []
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: Optional[str] = None,
        file_output: Optional[bool] = None,
        log_file: Optional[Path] = None,
        force: bool = False,
    ) -> None:
        """
        Install the console handler and, when enabled, the rotating file handler.

        Args:
            log_level: DEBUG, INFO, ... (defaults to LOG_LEVEL)
            file_output: Write to *log_file* as well (defaults to LOG_FILE_OUTPUT)
            log_file: Log file path (defaults to logs/echeque.log)
            force: Replace an earlier configuration
        """
        with self._lock:
            if self._configured and not force:
                return

            root = logging.getLogger()
            for handler in self._handlers:
                root.removeHandler(handler)
                handler.close()
            self._handlers = []

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root.setLevel(level)
            # aiosqlite traces every statement at DEBUG
            logging.getLogger("aiosqlite").setLevel(logging.WARNING)

            formatter = TerminalSafeFormatter(fmt=str(LOG_FORMAT), datefmt=f"{LOG_DATE_FORMAT} UTC")
            formatter.converter = time.gmtime

            handlers: List[logging.Handler] = [self._console_handler()]
            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)
            if file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                handlers.append(logging.handlers.RotatingFileHandler(
                    filename=str(path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                ))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)
            self._handlers = handlers
            self._configured = True

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stderr)
        return RichHandler(
            console=Console(theme=LEDGER_THEME, highlight=False, stderr=True),
            highlighter=EChequeLogHighlighter(),
            keywords=[],
            rich_tracebacks=True,
            show_path=False,
            show_time=False,
            show_level=False,
            markup=False,
        )

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


class TerminalSafeFormatter(logging.Formatter):
    """
    Strips ANSI escapes and control characters from formatted records.

    Cheque ids decoded as text and CLI input end up in log lines; they must
    not be able to move the cursor or forge extra lines.
    """

    _ansi_escape_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    _control_chars_re = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._control_chars_re.sub("", cls._ansi_escape_re.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class EChequeLogHighlighter(RegexHighlighter):
    """Highlights ledger entities in console output."""

    base_style = "echeque."
    highlights = [
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<cheque_id>\b0x[0-9a-fA-F]{64}\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<amount>\b\d+ wei\b)",
        r"(?P<status>\b(ISSUED|REDEEMED|REVOKED)\b)",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures logging from .env defaults on first use."""
    return _manager.get_logger(name)


def configure_logging(level: Optional[str] = None, file_output: Optional[bool] = None) -> None:
    """Reconfigure logging, e.g. from the [logging] section of echeque.toml."""
    _manager.configure(log_level=level, file_output=file_output, force=True)
