"""Configuration: chart limits, .env loading for the CLI, logging setup."""

import logging
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Project root = directory holding this file
PROJECT_ROOT = Path(__file__).resolve().parent

# --- Chart series (not legal rules) ---
ROLLING_SERIES_POINTS = 100  # target number of points in the rolling-absence series
MAX_ROLLING_SERIES_DAYS = 5000  # skip the rolling series beyond this many days
MAX_TIMELINE_DAYS = 4000  # skip the per-day timeline beyond this many days
SUMMARY_SAMPLE_STRIDE_DAYS = 7  # stride when sampling the max rolling absence

# --- Accepted input dates (keeps year arithmetic in range) ---
EARLIEST_SUPPORTED_DATE = date(1900, 1, 1)
LATEST_SUPPORTED_DATE = date(2200, 12, 31)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    log_level: str = "WARNING"
    json_indent: Optional[int] = 2
    today: Optional[str] = None  # pin "today" for reproducible output


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Read CLI settings from the environment (and .env, if present)."""
    load_dotenv(env_file or PROJECT_ROOT / ".env")

    indent_raw = os.getenv("ILR_JSON_INDENT", "2").strip()
    return Settings(
        log_level=os.getenv("ILR_LOG_LEVEL", "WARNING").upper(),
        json_indent=int(indent_raw) if indent_raw.isdigit() else None,
        today=os.getenv("ILR_TODAY") or None,
    )


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)
