"""
ledger.py - The CSV ledger of every weekly menu ever recorded.

Layout (comma-delimited, header row first):

  id,name,price,category,description,dayStart,dayEnd
  2024030409,チキン南蛮,800,定食,週代わり定食9番,2024-03-04,2024-03-10
  2024030415,豚の生姜焼き,750,定食,週代わり定食15番,2024-03-04,2024-03-10

The first 8 characters of id (YYYYMMDD) identify the week and are the dedup
key: one row with a matching key is enough to treat the week as done.

Design principles:
  - Read and write through pandas with every column as str, so quoting
    and leading zeros survive the round trip.
  - append() writes all of a week's rows in a single atomic replace
    (temp file + os.replace): a crash leaves either the old ledger or the
    new one, never a week with only one row. Existing bytes are copied
    as-is and new rows follow the file's line ending.
  - The ledger itself does no locking. Callers that may overlap must hold
    exclusive() across their last is_recorded() and the append(); otherwise
    at most one pipeline may run against a ledger at a time.
"""

import fcntl
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable

import pandas as pd

from weekly_menu.errors import LedgerFormatError, LedgerReadError, LedgerWriteError
from weekly_menu.records import FIELDS, MenuRecord

log = logging.getLogger(__name__)

WEEK_KEY_LENGTH = 8


class WeeklyLedger:
    """
    Append-only CSV table of recorded weeks.

    Args:
        path: Path to the ledger CSV (must already exist with a header row)
    """

    def __init__(self, path):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + '.lock')

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #

    @classmethod
    def create(cls, path) -> 'WeeklyLedger':
        """Create an empty ledger (header row only). Refuses to overwrite."""
        ledger = cls(path)
        if ledger.path.exists():
            raise LedgerWriteError(f'ledger already exists: {ledger.path}', ledger.path)
        try:
            ledger.path.parent.mkdir(parents=True, exist_ok=True)
            pd.DataFrame(columns=FIELDS).to_csv(
                ledger.path, index=False, encoding='utf-8', lineterminator='\n'
            )
        except OSError as e:
            raise LedgerWriteError(f'cannot create ledger {ledger.path}: {e}', ledger.path) from e
        log.info(f'Created ledger {ledger.path}')
        return ledger

    # ------------------------------------------------------------------ #
    # Read
    # ------------------------------------------------------------------ #

    def rows(self) -> pd.DataFrame:
        """
        Load every data row (header excluded) as a DataFrame of strings.

        Raises:
            LedgerReadError:   file missing or unreadable
            LedgerFormatError: empty file, unparsable CSV, or no id column
        """
        try:
            df = pd.read_csv(self.path, dtype=str, keep_default_na=False, encoding='utf-8')
        except FileNotFoundError as e:
            raise LedgerReadError(f'ledger not found: {self.path}', self.path) from e
        except pd.errors.EmptyDataError as e:
            raise LedgerFormatError(f'ledger has no header row: {self.path}', self.path) from e
        except pd.errors.ParserError as e:
            raise LedgerFormatError(f'cannot parse ledger {self.path}: {e}', self.path) from e
        except (OSError, UnicodeDecodeError) as e:
            raise LedgerReadError(f'cannot read ledger {self.path}: {e}', self.path) from e

        if 'id' not in df.columns:
            raise LedgerFormatError(f'ledger has no id column: {self.path}', self.path)
        return df

    def is_recorded(self, week_key: str) -> bool:
        """
        Return True if any row's id starts with week_key (YYYYMMDD).

        Rows are checked in file order and the first match wins.

        Raises:
            LedgerReadError:   ledger missing or unreadable
            LedgerFormatError: a row's id is shorter than 8 characters
        """
        df = self.rows()
        # Row 1 is the header, so data row i is file line i + 2
        for line_no, record_id in enumerate(df['id'], start=2):
            if len(record_id) < WEEK_KEY_LENGTH:
                raise LedgerFormatError(
                    f'{self.path}:{line_no}: id {record_id!r} is shorter than '
                    f'{WEEK_KEY_LENGTH} characters',
                    self.path,
                )
            if record_id[:WEEK_KEY_LENGTH] == week_key:
                log.debug(f'Week {week_key} found at {self.path}:{line_no}')
                return True
        return False

    # ------------------------------------------------------------------ #
    # Write
    # ------------------------------------------------------------------ #

    def append(self, records: Iterable[MenuRecord]):
        """
        Append records as new rows, all in one atomic replace.

        The existing file content is copied verbatim into a temp file in the
        same directory, the new rows are written after it, and the temp file
        replaces the ledger. Nothing is written if anything fails.

        Raises:
            LedgerWriteError: ledger missing, or any I/O failure
        """
        records = list(records)
        if not records:
            return

        try:
            existing = self.path.read_bytes()
        except FileNotFoundError as e:
            raise LedgerWriteError(f'ledger not found: {self.path}', self.path) from e
        except OSError as e:
            raise LedgerWriteError(f'cannot read ledger {self.path}: {e}', self.path) from e

        # New rows use the line ending the ledger already has
        newline = '\r\n' if b'\r\n' in existing else '\n'
        new_rows = pd.DataFrame([r.to_row() for r in records], columns=FIELDS).to_csv(
            header=False, index=False, lineterminator=newline
        ).encode('utf-8')

        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f'.{self.path.name}.', suffix='.tmp'
            )
            with os.fdopen(fd, 'wb') as tmp:
                tmp.write(existing)
                if existing and not existing.endswith(b'\n'):
                    tmp.write(newline.encode('ascii'))
                tmp.write(new_rows)
                tmp.flush()
                os.fsync(tmp.fileno())
            shutil.copymode(self.path, tmp_path)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise LedgerWriteError(f'cannot write ledger {self.path}: {e}', self.path) from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

        log.info(f'Appended {len(records)} row(s) to {self.path}: '
                 f'{", ".join(r.id for r in records)}')

    # ------------------------------------------------------------------ #
    # Locking
    # ------------------------------------------------------------------ #

    @contextmanager
    def exclusive(self):
        """
        Hold an exclusive advisory lock on <ledger>.lock for the block.

        Blocks until any other holder releases it. POSIX only (fcntl).

        Raises:
            LedgerReadError:  the ledger itself is missing
            LedgerWriteError: the lock file cannot be created next to it
        """
        if not self.path.is_file():
            raise LedgerReadError(f'ledger not found: {self.path}', self.path)
        try:
            fp = open(self.lock_path, 'a')
        except OSError as e:
            raise LedgerWriteError(f'cannot open lock file {self.lock_path}: {e}', self.path) from e
        try:
            fcntl.flock(fp.fileno(), fcntl.LOCK_EX)
            log.debug(f'Locked {self.lock_path}')
            yield self
        finally:
            fcntl.flock(fp.fileno(), fcntl.LOCK_UN)
            fp.close()
