"""Command line: read an ILR calculation input as JSON, print the result as JSON."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from composer import calculate_travel_data
from config import (
    EARLIEST_SUPPORTED_DATE,
    LATEST_SUPPORTED_DATE,
    configure_logging,
    load_settings,
)
from models import ILRCalculationInput
from trips import parse_iso_date

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ilr-calc",
        description="Work out the earliest ILR application date from a list of trips abroad.",
    )
    parser.add_argument("input", help="JSON file with trips, visa dates and ILR track ('-' for stdin)")
    parser.add_argument("--today", help="Treat this date (YYYY-MM-DD) as today")
    parser.add_argument("--indent", type=int, default=None, help="JSON indent (default from ILR_JSON_INDENT)")
    return parser


def _read_payload(parser: argparse.ArgumentParser, path: str) -> dict:
    try:
        if path == "-":
            payload = json.load(sys.stdin)
        else:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
    except OSError as e:
        parser.error(f"cannot read {path}: {e}")
    except json.JSONDecodeError as e:
        parser.error(f"{path} is not valid JSON: {e}")

    if not isinstance(payload, dict):
        parser.error(f"{path} must contain a JSON object")
    return payload


def main(argv: Optional[List[str]] = None) -> int:
    settings = load_settings()
    configure_logging(settings.log_level)

    parser = build_parser()
    args = parser.parse_args(argv)

    today_raw = args.today or settings.today
    today = parse_iso_date(today_raw) if today_raw else None
    if today_raw and today is None:
        parser.error(f"--today must be a YYYY-MM-DD date, got {today_raw!r}")
    if today and not EARLIEST_SUPPORTED_DATE <= today <= LATEST_SUPPORTED_DATE:
        parser.error(f"--today {today_raw} is outside the supported range")

    payload = _read_payload(parser, args.input)
    result = calculate_travel_data(ILRCalculationInput.from_dict(payload), today=today)
    logger.info("Verdict: %s", result.validation.status)

    indent = args.indent if args.indent is not None else settings.json_indent
    print(json.dumps(result.to_dict(), indent=indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
