"""
Reporter: queue purchase digest emails.

Meant to be run by an external scheduler (cron, a job runner) at the
digest schedule. Each run covers purchases since the report last went out.

Usage
-----
# Every user's digest
wtmm-reporter

# A single report definition
wtmm-reporter --report-id 5
"""

import argparse
import logging
import sys
from typing import Optional

from app.config import get_settings
from app.services import report, store
from app.services.store import StoreError

logger = logging.getLogger(__name__)


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(
        prog="wtmm-reporter",
        description="Queue purchase digest emails.",
    )
    parser.add_argument(
        "--report-id",
        type=int,
        default=None,
        help="Run only this report definition (default: all of them).",
    )
    args = parser.parse_args(argv)

    settings = get_settings()

    if args.report_id is None:
        try:
            queued = report.run_all_reports(settings)
        except StoreError as e:
            logger.error(f"Could not load report definitions: {e.message}")
            return 1
        logger.info(f"Queued {queued} purchase digest(s)")
        return 0

    try:
        definition = store.get_report_definition(args.report_id)
        if definition is None:
            logger.error(f"No report definition with id {args.report_id}")
            return 1
        report.run_report(definition, settings)
    except StoreError as e:
        logger.error(f"Error running report {args.report_id}: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
