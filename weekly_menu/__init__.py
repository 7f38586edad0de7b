"""
weekly_menu - records the canteen's weekly set meals from its social feed.

Pipeline steps:
  1. feed       - find the newest weekly set-meal post and its photo
  2. ledger     - stop early if the post's week is already recorded
  3. vision     - OCR the sign photo with Google Cloud Vision
  4. normalize  - flatten the OCR text into one whitespace-free line
  5. extract    - locate the two priced entries (slot 9 and slot 15)
  6. records    - build the two MenuRecords for the week
  7. ledger     - append both rows to the CSV ledger in one write

Entry point: python -m weekly_menu.run
"""

__version__ = '0.3.0'
