"""Run page checks once from the command line.

Usage: python check_links.py [--link-id ID] [--add URL] [--status]

Checks every monitored link (or a single one) against the configured store
and prints what changed. Scheduling is left to cron or whatever calls this.
"""

import argparse
import logging
import sys

from config import settings
from errors import ValidationError
from fetcher import PageFetcher
from models import OutcomeStatus
from monitor import PageMonitor
from store import build_store
from summarizer import Summarizer, build_openrouter_client
from validator import validate_url


def print_status(monitor: PageMonitor):
    status = monitor.status()
    for component, info in status.items():
        state = "OK" if info["ok"] else f"DOWN ({info.get('error')})"
        print(f"  {component:<10} {state:<40} {info['latencyMs']}ms")


def main() -> int:
    parser = argparse.ArgumentParser(description="Check monitored pages for content changes")
    parser.add_argument("--link-id", help="Only check this link")
    parser.add_argument("--add", metavar="URL", help="Start monitoring URL before checking")
    parser.add_argument("--status", action="store_true", help="Print service health and exit")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    with PageFetcher() as fetcher:
        monitor = PageMonitor(
            store=build_store(settings),
            fetcher=fetcher,
            summarizer=Summarizer(build_openrouter_client()),
        )

        if args.status:
            print("Service status")
            print_status(monitor)
            return 0

        if args.add:
            try:
                validate_url(args.add)
            except ValidationError as e:
                print(f"Cannot monitor {args.add}: {e}", file=sys.stderr)
                return 2
            existing = monitor.store.find_link_by_url(args.add)
            link = existing or monitor.store.create_link(args.add)
            print(f"Monitoring {link['url']} (id {link['id']})")

        if args.link_id:
            try:
                outcomes = [monitor.run_check(args.link_id)]
            except LookupError as e:
                print(f"{args.link_id}: {e}", file=sys.stderr)
                return 1
        else:
            outcomes = monitor.run_all()

    print(f"\n{'='*60}")
    print("SUMMARY")
    for outcome in outcomes:
        print(f"  [{outcome.status.value.upper()}] {outcome.target_id}")
        if outcome.error:
            print(f"    error: {outcome.error}")
        elif outcome.summary:
            print(f"    {outcome.summary}")
    changed = sum(1 for o in outcomes if o.status is OutcomeStatus.CHANGED)
    failed = sum(1 for o in outcomes if o.status is OutcomeStatus.FAILED)
    print(f"  Checked: {len(outcomes)}, changed: {changed}, errors: {failed}")
    print(f"{'='*60}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
