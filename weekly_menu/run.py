"""
run.py - CLI entry point for the weekly menu recorder.

Usage:
    # Scheduled run: newest post → OCR → ledger
    python -m weekly_menu.run run --ledger weekly.csv

    # Check a post without touching the ledger
    python -m weekly_menu.run run --dry-run --verbose

    # Record from text you already have (no network)
    python -m weekly_menu.run parse --date 2024-03-04 --text "9.カレー800円15.ラーメン700円"

    # Create an empty ledger / show what is recorded
    python -m weekly_menu.run init --ledger weekly.csv
    python -m weekly_menu.run list --ledger weekly.csv

Environment variables:
    TW_BEARER_TOKEN, SA_JSON, WEEKLY_LEDGER

Exit status is 0 when the week was recorded or already recorded, 1 on any
failure. A failed run writes nothing; the next scheduled run starts over.
"""

import argparse
import logging
import sys
from datetime import datetime

import pandas as pd

from weekly_menu.config import load_settings
from weekly_menu.errors import WeeklyMenuError
from weekly_menu.feed import TwitterFeed
from weekly_menu.ledger import WeeklyLedger
from weekly_menu.pipeline import record_week, run_pipeline
from weekly_menu.vision import VisionClient

log = logging.getLogger('weekly_menu.run')


def _setup_logging(verbose: bool):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s  %(levelname)-8s  %(name)s  %(message)s',
        datefmt='%H:%M:%S',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )
    # Quieten noisy third-party loggers
    for noisy in ('urllib3', 'requests', 'google'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _parse_date(value: str):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise argparse.ArgumentTypeError(f'expected YYYY-MM-DD, got {value!r}')


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='weekly-menu',
        description='Record the weekly set meals posted by the canteen',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Ledger columns:
  id, name, price, category, description, dayStart, dayEnd

Safe to re-run: a week whose date is already in the ledger is skipped
before any OCR request is made.
        """
    )
    parser.add_argument('--config', default=None, metavar='PATH',
                        help='YAML config file (default: config/config.yaml if present)')
    parser.add_argument('--ledger', default=None, metavar='PATH',
                        help='Ledger CSV path. Env: WEEKLY_LEDGER (default: weekly.csv)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable DEBUG logging')

    sub = parser.add_subparsers(dest='command')

    run_p = sub.add_parser('run', help='Full run: feed → OCR → ledger (default)')
    parse_p = sub.add_parser('parse', help='Record the week from given text (no network)')
    for p in (run_p, parse_p):
        p.add_argument('--strict-slots', action='store_true', default=None,
                       help='Fail unless the captured slot numbers are 9 then 15')
        p.add_argument('--dry-run', action='store_true',
                       help='Extract and print records but do NOT write the ledger')
        p.add_argument('--no-lock', action='store_true',
                       help='Do not lock the ledger (only one run may touch it)')

    parse_p.add_argument('--date', required=True, type=_parse_date,
                         help='Reference date of the post, YYYY-MM-DD')
    parse_p.add_argument('--text', default=None,
                         help='OCR text (read from stdin if omitted)')

    sub.add_parser('init', help='Create an empty ledger with the header row')
    sub.add_parser('list', help='Print the recorded rows')

    return parser


def _print_records(result):
    for r in result.records:
        print(f'{r.id}  {r.name}  {r.price}  {r.day_start}..{r.day_end}')


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = args.command or 'run'
    _setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
        if args.ledger:
            settings.ledger_path = args.ledger
        ledger = WeeklyLedger(settings.ledger_path)

        if command == 'init':
            WeeklyLedger.create(settings.ledger_path)
            print(f'Created {settings.ledger_path}')
            return 0

        if command == 'list':
            rows = ledger.rows()
            if rows.empty:
                print('(no weeks recorded)')
            else:
                with pd.option_context('display.max_rows', None, 'display.width', 200):
                    print(rows.to_string(index=False))
            return 0

        strict = getattr(args, 'strict_slots', None)
        strict_slots = settings.strict_slots if strict is None else strict
        dry_run = getattr(args, 'dry_run', False)
        use_lock = settings.lock and not getattr(args, 'no_lock', False)

        if command == 'parse':
            text = args.text if args.text is not None else sys.stdin.read()
            result = record_week(
                args.date, text, ledger,
                strict_slots=strict_slots,
                fold_width=settings.fold_width,
                dry_run=dry_run,
                use_lock=use_lock,
            )
        else:
            feed = TwitterFeed(
                settings.require_bearer_token(),
                account=settings.feed_account,
                queries=settings.feed_queries,
                timeout=settings.feed_timeout,
            )
            ocr = VisionClient.from_env(settings.sa_json_var, timeout=settings.vision_timeout)
            result = run_pipeline(
                feed, ocr, ledger,
                strict_slots=strict_slots,
                fold_width=settings.fold_width,
                dry_run=dry_run,
                use_lock=use_lock,
            )

        _print_records(result)
        print(f'{result.status}: week {result.week_key}')
        return 0

    except KeyboardInterrupt:
        print('\n\n⚠️  Interrupted. Nothing was written; re-run to retry.')
        return 1
    except WeeklyMenuError as e:
        log.error(f'{type(e).__name__}: {e}')
        return 1
    except Exception as e:
        log.error(f'Fatal error: {e}', exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
