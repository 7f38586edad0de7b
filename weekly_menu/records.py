"""
records.py - Build the two weekly MenuRecords from extracted entries.

Each week produces exactly two records sharing the same validity window:

  id          YYYYMMDD + slot code ("09" / "15")
  name        dish name as captured
  price       price digits as captured (kept as a string)
  category    定食 (set meal)
  description 週代わり定食9番 / 週代わり定食15番
  dayStart    reference date, YYYY-MM-DD
  dayEnd      reference date + 6 days (inclusive 7-day window)

The id depends only on the reference date and the fixed slot code, never on
the slot digit captured from the text.
"""

from dataclasses import dataclass, astuple
from datetime import date, datetime, timedelta
from typing import Union

from weekly_menu.extract import PriceMatch

ID_DATE_FORMAT = '%Y%m%d'
DAY_FORMAT = '%Y-%m-%d'

CATEGORY = '定食'

# (slot code appended to the id, description)
SLOTS = (
    ('09', '週代わり定食9番'),
    ('15', '週代わり定食15番'),
)

# Ledger column order
FIELDS = ['id', 'name', 'price', 'category', 'description', 'dayStart', 'dayEnd']

WINDOW_DAYS = 6

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class MenuRecord:
    id: str
    name: str
    price: str
    category: str
    description: str
    day_start: str
    day_end: str

    def to_row(self) -> list[str]:
        """Return the 7 ledger fields in column order."""
        return list(astuple(self))

    def to_dict(self) -> dict:
        return dict(zip(FIELDS, self.to_row()))


def _as_date(reference: DateLike) -> date:
    # Keep the calendar date the timestamp was reported in
    if isinstance(reference, datetime):
        return reference.date()
    return reference


def week_key(reference: DateLike) -> str:
    """Return the 8-character dedup key (YYYYMMDD) for a reference date."""
    return _as_date(reference).strftime(ID_DATE_FORMAT)


def build_menu_records(first: PriceMatch,
                       second: PriceMatch,
                       reference: DateLike) -> tuple[MenuRecord, MenuRecord]:
    """
    Build the slot 9 and slot 15 records for the week starting at reference.

    Pure function: the same matches and date always give identical records.
    """
    day = _as_date(reference)
    key = week_key(day)
    day_start = day.strftime(DAY_FORMAT)
    day_end = (day + timedelta(days=WINDOW_DAYS)).strftime(DAY_FORMAT)

    records = []
    for entry, (code, description) in zip((first, second), SLOTS):
        records.append(MenuRecord(
            id=key + code,
            name=entry.name,
            price=entry.price,
            category=CATEGORY,
            description=description,
            day_start=day_start,
            day_end=day_end,
        ))
    return records[0], records[1]
