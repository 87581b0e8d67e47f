# ==============================================================================
# logging_utils.py  –  Console + file logging for every knightstats module
#
# Features:
#   ✔ Console output on stdout
#   ✔ Timestamped log file per logger (KNIGHTSTATS_LOG_DIR or <repo>/logs)
#   ✔ Idempotent: clears handlers before re-adding
# ==============================================================================

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

# ------------------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------------------

_FMT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DEFAULT_LEVEL = logging.INFO
_LEVEL_NAMES = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# ------------------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------------------


def _detect_logs_dir() -> Path:
    """
    Detect where logs should be stored.

    • KNIGHTSTATS_LOG_DIR set → that directory
    • Otherwise              → <repo>/logs
    """
    override = os.getenv("KNIGHTSTATS_LOG_DIR")
    if override:
        return Path(override)

    return Path(__file__).resolve().parents[2] / "logs"


def _env_level(default: int) -> int:
    """Read KNIGHTSTATS_LOG_LEVEL (e.g. DEBUG) if present."""
    name = os.getenv("KNIGHTSTATS_LOG_LEVEL", "").strip().upper()
    if name in _LEVEL_NAMES:
        return getattr(logging, name)
    return default


def _file_logging_enabled() -> bool:
    return os.getenv("KNIGHTSTATS_LOG_TO_FILE", "true").strip().lower() in {
        "1",
        "true",
        "yes",
    }


def _init_file_handler(
    logs_dir: Path, logger_name: str, fmt: logging.Formatter
) -> Optional[logging.Handler]:
    """
    Create a timestamped FileHandler if directory is writable.
    Falls back to console logging if not.
    """
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        file_path = logs_dir / f"{logger_name}_{timestamp}.log"

        fh = logging.FileHandler(file_path, encoding="utf-8", delay=True)
        fh.setFormatter(fmt)
        return fh
    except OSError:
        logging.getLogger().warning("Cannot write logs to %s", logs_dir)
        return None


# ------------------------------------------------------------------------------
# Public factory
# ------------------------------------------------------------------------------


def setup_logger(
    name: str,
    level: int = _DEFAULT_LEVEL,
    logs_dir: Union[str, Path, None] = None,
) -> logging.Logger:
    """
    Return a fresh `logging.Logger`.

    Parameters
    ----------
    name : str
        Logger name (used in file naming).
    level : int
        Logging level (INFO by default, KNIGHTSTATS_LOG_LEVEL overrides).
    logs_dir : str | Path | None
        Override log directory (default: auto-detect).
    """
    logger = logging.getLogger(name)
    logger.setLevel(_env_level(level))

    # Clear existing handlers for idempotency
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(_FMT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if _file_logging_enabled():
        target_dir = Path(logs_dir) if logs_dir else _detect_logs_dir()
        file_handler = _init_file_handler(target_dir, name, formatter)
        if file_handler:
            logger.addHandler(file_handler)

    return logger
