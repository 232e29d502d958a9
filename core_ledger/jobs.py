"""
Command-line jobs.

    python -m core_ledger.jobs run-recurring [--as-of YYYY-MM-DD]

Meant to be called by cron or any external scheduler once a day.
"""

import argparse
import logging
import sys
from datetime import date

from core_ledger.logging_config import configure_logging
from core_ledger.models.base import SessionLocal
from core_ledger.models.enums import RecurringOutcome
from core_ledger.services.recurring_scheduler import RecurringScheduler

logger = logging.getLogger(__name__)


def run_recurring(as_of: date | None = None) -> int:
    """Run one scheduler tick. Returns the number of failed templates."""
    db = SessionLocal()
    try:
        results = RecurringScheduler(db).run_due(as_of)
    finally:
        db.close()

    for result in results:
        logger.info(
            "template=%s date=%s outcome=%s voucher=%s",
            result.template_id, result.scheduled_date,
            result.outcome.value, result.voucher_id,
        )
    return sum(1 for r in results if r.outcome == RecurringOutcome.FAILED)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="core_ledger.jobs")
    commands = parser.add_subparsers(dest="command", required=True)

    recurring = commands.add_parser(
        "run-recurring", help="Generate vouchers for due recurring templates"
    )
    recurring.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Run as if today were this date (YYYY-MM-DD)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.command == "run-recurring":
        failed = run_recurring(args.as_of)
        return 1 if failed else 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
