"""
config.py - Where data lives and how the app is tuned

Resolution order for the data directory:
    1. --data-dir on the command line
    2. FOCUSLOG_HOME environment variable
    3. ~/.focuslog

FOCUSLOG_ROWS sets how many history rows are shown per screen.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from history import DEFAULT_ROWS

DEFAULT_DATA_DIR = Path.home() / ".focuslog"
CATEGORIES_FILE = "categories.dat"
INTERVALS_FILE = "intervals.dat"

HOME_ENV = "FOCUSLOG_HOME"
ROWS_ENV = "FOCUSLOG_ROWS"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    history_rows: int = DEFAULT_ROWS

    @property
    def categories_path(self) -> Path:
        return self.data_dir / CATEGORIES_FILE

    @property
    def intervals_path(self) -> Path:
        return self.data_dir / INTERVALS_FILE


def resolve_data_dir(data_dir: Optional[str] = None) -> Path:
    if data_dir:
        return Path(data_dir).expanduser().resolve()
    env = os.environ.get(HOME_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return DEFAULT_DATA_DIR


def _history_rows() -> int:
    raw = os.environ.get(ROWS_ENV)
    if not raw:
        return DEFAULT_ROWS
    try:
        rows = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", ROWS_ENV, raw)
        return DEFAULT_ROWS
    if rows < 1:
        logger.warning("Ignoring %s=%r: must be at least 1", ROWS_ENV, raw)
        return DEFAULT_ROWS
    return rows


def load_settings(data_dir: Optional[str] = None) -> Settings:
    settings = Settings(data_dir=resolve_data_dir(data_dir), history_rows=_history_rows())
    logger.debug("Using data directory %s", settings.data_dir)
    return settings


def setup_logging(verbose: bool = False):
    """
    Route log records through Rich on stderr.

    User-facing output goes through the CLI's Console; logging is for
    diagnostics only, so the default level is WARNING.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
