"""
extract.py - Locate the two priced set-meal entries in flattened OCR text.

A priced entry is a slot number (9 or 15), a period, the dish name, the
price digits and the yen marker:

    9.チキン南蛮800円15.豚の生姜焼き750円
    └┬┘└───┬───┘└┬┘   ...
   slot   name  price

The name is matched non-greedily, so it ends right before the first run of
digits followed by 円. Matching is purely textual: any non-empty captured
substring is accepted as a dish name ("9.800円" captures an empty name and
is rejected).

By default the first two matches are taken as slot 9 and slot 15 in that
order, whatever slot digit was actually captured. With strict_slots=True the
captured digits must be "9" then "15" or extraction fails.
"""

import logging
import re
from dataclasses import dataclass

from weekly_menu.errors import ExtractionError

log = logging.getLogger(__name__)

# Slot codes in the order the sign lists them
EXPECTED_SLOTS = ('9', '15')

# ASCII digits only: full-width text must be folded first (normalize.fold_width)
_PRICED_ENTRY_RE = re.compile(r'(9|15)\.(.*?)(\d+)円', re.ASCII)


@dataclass(frozen=True)
class PriceMatch:
    """One priced entry found in the text."""
    slot: str
    name: str
    price: str


class PriceLinePattern:
    """
    Finds priced menu entries in a flattened OCR line.

    Args:
        strict_slots: Require the captured slot digits to be 9 then 15
    """

    pattern = _PRICED_ENTRY_RE

    def __init__(self, strict_slots: bool = False):
        self.strict_slots = strict_slots

    def find_all(self, text: str) -> list[PriceMatch]:
        """Return every non-overlapping priced entry in encounter order."""
        matches = [
            PriceMatch(slot=m.group(1), name=m.group(2), price=m.group(3))
            for m in self.pattern.finditer(text or '')
        ]
        log.debug(f'Priced entries: {matches}')
        return matches

    def extract_pair(self, text: str) -> tuple[PriceMatch, PriceMatch]:
        """
        Return the first two priced entries as (slot 9, slot 15).

        Raises:
            ExtractionError: fewer than two entries, or (strict mode) the
                captured slot digits are not 9 then 15
        """
        matches = self.find_all(text)
        if len(matches) < 2:
            raise ExtractionError(
                f'insufficient priced entries: found {len(matches)} in {text!r}'
            )
        if len(matches) > 2:
            log.info(f'Found {len(matches)} priced entries, using the first two')

        first, second = matches[0], matches[1]
        for entry in (first, second):
            if not entry.name:
                raise ExtractionError(f'empty dish name in entry {entry}')

        if self.strict_slots:
            captured = (first.slot, second.slot)
            if captured != EXPECTED_SLOTS:
                raise ExtractionError(
                    f'slot mismatch: expected {EXPECTED_SLOTS}, captured {captured}'
                )
        elif (first.slot, second.slot) != EXPECTED_SLOTS:
            log.warning(
                f'Captured slots {first.slot!r}, {second.slot!r} are out of order; '
                f'labelling by position'
            )
        return first, second


def extract_pair(text: str, strict_slots: bool = False) -> tuple[PriceMatch, PriceMatch]:
    """Convenience wrapper around PriceLinePattern.extract_pair()."""
    return PriceLinePattern(strict_slots=strict_slots).extract_pair(text)
