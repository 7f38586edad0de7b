"""
errors.py - Exception hierarchy for the weekly menu pipeline.

Every error is fatal to the current run: nothing retries locally, the CLI
logs the error and exits non-zero, and the next scheduled run starts over.
"""


class WeeklyMenuError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(WeeklyMenuError):
    """Missing or invalid configuration / credentials."""


class FeedError(WeeklyMenuError):
    """The social feed could not supply a usable post."""


class OCRError(WeeklyMenuError):
    """The OCR service failed or returned no text."""


class ExtractionError(WeeklyMenuError):
    """The OCR text did not contain two priced entries."""


class LedgerError(WeeklyMenuError):
    """Base class for ledger failures."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class LedgerReadError(LedgerError):
    """The ledger is missing or unreadable, so dedup cannot be checked."""


class LedgerFormatError(LedgerError):
    """The ledger exists but a row cannot be interpreted."""


class LedgerWriteError(LedgerError):
    """Appending to the ledger failed; no rows were written."""
