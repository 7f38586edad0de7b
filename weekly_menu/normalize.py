"""
normalize.py - OCR text normalisation.

The sign is photographed, so Vision returns the menu broken across lines
("9.カレー\n800円\n15. ..."). Extraction works on a single line with every
whitespace character removed, including the ideographic space (U+3000).
"""

import re
import unicodedata

_WHITESPACE = re.compile(r'\s+')


def flatten_text(raw: str) -> str:
    """
    Return the OCR text as one line with all whitespace removed.

    Example:
      "9. カレー\\n 800円\\n15.ラーメン 700円" → "9.カレー800円15.ラーメン700円"
    """
    if not raw or not isinstance(raw, str):
        return ''
    return _WHITESPACE.sub('', raw)


def fold_width(text: str) -> str:
    """
    Fold full-width digits and punctuation to ASCII (NFKC).

    "９．カレー８００円" → "9.カレー800円". Not applied by default; the
    pipeline only uses it when extraction.fold_width is enabled.
    """
    if not text:
        return ''
    return unicodedata.normalize('NFKC', text)
