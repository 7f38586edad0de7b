"""
pipeline.py - Sequences one run of the weekly menu recorder.

Step flow:
  1  feed.newest_post()           → post text, photo URL, reference time
  2  ledger.is_recorded(week_key) → stop here if the week is already done
  3  ocr.detect_text(photo_url)   → raw sign text
  4  flatten_text()               → one whitespace-free line
  5  PriceLinePattern.extract_pair() → slot 9 and slot 15 entries
  6  build_menu_records()         → two MenuRecords
  7  ledger.append()              → both rows in one atomic write

record_week() runs steps 2–7 for a given reference date and text.
run_pipeline() adds step 1 and the OCR call in front of it.

Every failure propagates to the caller with the ledger untouched; there is
no retry. A week already in the ledger is skipped without locking. Otherwise
the dedup check is repeated and steps 3–7 run under the ledger's exclusive
lock when use_lock is set, so overlapping runs cannot record the same week
twice. Without the lock only one pipeline may run against a ledger at a time.
"""

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Callable, Union

from weekly_menu.extract import PriceLinePattern
from weekly_menu.feed import TwitterFeed
from weekly_menu.ledger import WeeklyLedger
from weekly_menu.normalize import flatten_text, fold_width as fold_full_width
from weekly_menu.records import DateLike, MenuRecord, build_menu_records, week_key
from weekly_menu.vision import VisionClient

log = logging.getLogger(__name__)

RECORDED = 'recorded'
ALREADY_RECORDED = 'already_recorded'
DRY_RUN = 'dry_run'

TextSource = Union[str, Callable[[], str]]


@dataclass
class RunResult:
    status: str
    week_key: str
    records: list[MenuRecord] = field(default_factory=list)


# ------------------------------------------------------------------ #
# Core: check → extract → build → append
# ------------------------------------------------------------------ #

def record_week(reference: DateLike,
                text: TextSource,
                ledger: WeeklyLedger,
                strict_slots: bool = False,
                fold_width: bool = False,
                dry_run: bool = False,
                use_lock: bool = True) -> RunResult:
    """
    Record the two set meals for the week starting at reference.

    Args:
        reference:    Post date/time; its calendar date keys the week
        text:         OCR text, or a zero-argument callable producing it.
                      A callable is only invoked when the week is new.
        ledger:       Ledger to check and append to
        strict_slots: Require captured slot digits 9 then 15
        fold_width:   Fold full-width digits/punctuation before matching
        dry_run:      Extract and build, but do not append
        use_lock:     Hold the ledger lock across check and append

    Raises:
        LedgerReadError / LedgerFormatError: dedup check impossible
        ExtractionError: fewer than two priced entries
        LedgerWriteError: append failed (ledger unchanged)
        Anything raised by a callable text source
    """
    key = week_key(reference)

    # ── Step 2: Dedup ─────────────────────────────────────────────
    # Read-only check first: a recorded week is skipped without the lock,
    # so a ledger in a read-only directory still skips cleanly.
    if ledger.is_recorded(key):
        log.info(f'Week {key} already recorded, nothing to do')
        return RunResult(status=ALREADY_RECORDED, week_key=key)

    lock = ledger.exclusive() if use_lock and not dry_run else nullcontext()

    with lock:
        # Another run may have recorded the week while we waited for the lock
        if use_lock and not dry_run and ledger.is_recorded(key):
            log.info(f'Week {key} recorded by a concurrent run, nothing to do')
            return RunResult(status=ALREADY_RECORDED, week_key=key)

        # ── Steps 3–4: Text ───────────────────────────────────────
        raw = text() if callable(text) else text
        if fold_width:
            raw = fold_full_width(raw)
        oneline = flatten_text(raw)
        log.debug(f'Flattened text: {oneline!r}')

        # ── Steps 5–6: Extract + build ────────────────────────────
        first, second = PriceLinePattern(strict_slots=strict_slots).extract_pair(oneline)
        records = list(build_menu_records(first, second, reference))
        for r in records:
            log.info(f'  {r.id}  {r.name}  {r.price}円  {r.day_start}..{r.day_end}')

        if dry_run:
            log.info('DRY RUN: nothing written to the ledger')
            return RunResult(status=DRY_RUN, week_key=key, records=records)

        # ── Step 7: Append ────────────────────────────────────────
        ledger.append(records)

    return RunResult(status=RECORDED, week_key=key, records=records)


# ------------------------------------------------------------------ #
# Full run: feed → OCR → record_week
# ------------------------------------------------------------------ #

def run_pipeline(feed: TwitterFeed,
                 ocr: VisionClient,
                 ledger: WeeklyLedger,
                 strict_slots: bool = False,
                 fold_width: bool = False,
                 dry_run: bool = False,
                 use_lock: bool = True) -> RunResult:
    """
    One scheduled run: find the newest post and record its week.

    OCR is only requested when the ledger does not already hold the week.
    """
    log.info('=' * 60)
    log.info('WEEKLY MENU RECORDER')
    log.info('=' * 60)
    log.info(f'  Account:       {feed.account}')
    log.info(f'  Ledger:        {ledger.path}')
    log.info(f'  Strict slots:  {strict_slots}')
    log.info(f'  Dry run:       {dry_run}')

    # ── Step 1: Feed ──────────────────────────────────────────────
    post = feed.newest_post()

    result = record_week(
        post.created_at,
        lambda: ocr.detect_text(post.photo_url),
        ledger,
        strict_slots=strict_slots,
        fold_width=fold_width,
        dry_run=dry_run,
        use_lock=use_lock,
    )

    log.info('─' * 60)
    log.info(f'RUN COMPLETE: {result.status} (week {result.week_key}, post {post.id})')
    return result
