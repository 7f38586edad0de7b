import os
import stat
import threading
from datetime import date

import pandas as pd
import pytest

from conftest import HEADER
from weekly_menu.errors import LedgerFormatError, LedgerReadError, LedgerWriteError
from weekly_menu.extract import PriceMatch
from weekly_menu.ledger import WeeklyLedger
from weekly_menu.records import FIELDS, build_menu_records


def _week(ref, first='Curry', second='Ramen'):
    return build_menu_records(
        PriceMatch('9', first, '800'), PriceMatch('15', second, '700'), ref
    )


def test_empty_ledger_records_nothing(ledger):
    assert ledger.is_recorded('20240304') is False
    assert ledger.rows().empty


def test_append_then_is_recorded(ledger, ledger_path):
    ledger.append(_week(date(2024, 3, 4)))

    assert ledger.is_recorded('20240304') is True
    assert ledger.is_recorded('20240311') is False
    assert ledger_path.read_text(encoding='utf-8') == (
        HEADER
        + '2024030409,Curry,800,定食,週代わり定食9番,2024-03-04,2024-03-10\n'
        + '2024030415,Ramen,700,定食,週代わり定食15番,2024-03-04,2024-03-10\n'
    )


def test_single_orphan_row_flags_week(ledger_path):
    ledger_path.write_text(
        HEADER + '2024030409,Curry,800,定食,週代わり定食9番,2024-03-04,2024-03-10\n',
        encoding='utf-8',
    )
    assert WeeklyLedger(ledger_path).is_recorded('20240304') is True


def test_append_preserves_existing_rows_and_quoting(ledger, ledger_path):
    ledger.append(_week(date(2024, 2, 26), first='Curry, large'))
    ledger.append(_week(date(2024, 3, 4)))

    rows = ledger.rows()
    assert list(rows.columns) == FIELDS
    assert len(rows) == 4
    assert rows.loc[0, 'name'] == 'Curry, large'
    assert rows['id'].tolist() == ['2024022609', '2024022615', '2024030409', '2024030415']


def test_ids_keep_leading_zeros_as_strings(ledger):
    ledger.append(_week(date(2024, 3, 4)))
    assert ledger.rows()['price'].tolist() == ['800', '700']
    assert ledger.rows()['id'].map(type).eq(str).all()


def test_append_adds_missing_trailing_newline(ledger_path):
    ledger_path.write_text(HEADER.rstrip('\n'), encoding='utf-8')
    WeeklyLedger(ledger_path).append(_week(date(2024, 3, 4)))
    lines = ledger_path.read_text(encoding='utf-8').splitlines()
    assert lines[0] == HEADER.rstrip('\n')
    assert len(lines) == 3


def test_append_keeps_file_mode(ledger, ledger_path):
    os.chmod(ledger_path, 0o640)
    ledger.append(_week(date(2024, 3, 4)))
    assert stat.S_IMODE(os.stat(ledger_path).st_mode) == 0o640


def test_append_nothing_is_noop(ledger, ledger_path):
    before = ledger_path.read_bytes()
    ledger.append([])
    assert ledger_path.read_bytes() == before


def test_missing_ledger_read_error(tmp_path):
    with pytest.raises(LedgerReadError):
        WeeklyLedger(tmp_path / 'missing.csv').is_recorded('20240304')


def test_missing_ledger_write_error(tmp_path):
    path = tmp_path / 'missing.csv'
    with pytest.raises(LedgerWriteError):
        WeeklyLedger(path).append(_week(date(2024, 3, 4)))
    assert not path.exists()


def test_failed_write_leaves_ledger_untouched(ledger, ledger_path, monkeypatch):
    before = ledger_path.read_bytes()

    def boom(src, dst):
        raise OSError('disk full')

    monkeypatch.setattr(os, 'replace', boom)
    with pytest.raises(LedgerWriteError, match='disk full'):
        ledger.append(_week(date(2024, 3, 4)))

    assert ledger_path.read_bytes() == before
    assert [p.name for p in ledger_path.parent.iterdir()] == [ledger_path.name]


def test_short_id_is_format_error(ledger_path):
    ledger_path.write_text(HEADER + '2024,Curry,800,定食,x,2024-03-04,2024-03-10\n',
                           encoding='utf-8')
    with pytest.raises(LedgerFormatError, match='shorter than 8'):
        WeeklyLedger(ledger_path).is_recorded('20240304')


def test_empty_file_is_format_error(ledger_path):
    ledger_path.write_text('', encoding='utf-8')
    with pytest.raises(LedgerFormatError, match='no header'):
        WeeklyLedger(ledger_path).is_recorded('20240304')


def test_missing_id_column_is_format_error(ledger_path):
    ledger_path.write_text('week,name\n20240304,Curry\n', encoding='utf-8')
    with pytest.raises(LedgerFormatError, match='no id column'):
        WeeklyLedger(ledger_path).is_recorded('20240304')


def test_create_writes_header_and_refuses_overwrite(tmp_path):
    path = tmp_path / 'data' / 'weekly.csv'
    ledger = WeeklyLedger.create(path)
    assert path.read_text(encoding='utf-8') == HEADER
    assert ledger.is_recorded('20240304') is False

    with pytest.raises(LedgerWriteError, match='already exists'):
        WeeklyLedger.create(path)


def test_exclusive_lock_serialises_holders(ledger):
    order = []
    entered = threading.Event()
    release = threading.Event()

    def holder():
        with ledger.exclusive():
            order.append('first in')
            entered.set()
            release.wait(5)
            order.append('first out')

    t = threading.Thread(target=holder)
    t.start()
    entered.wait(5)

    def second():
        with WeeklyLedger(ledger.path).exclusive():
            order.append('second in')

    t2 = threading.Thread(target=second)
    t2.start()
    t2.join(0.2)
    assert order == ['first in']

    release.set()
    t.join(5)
    t2.join(5)
    assert order == ['first in', 'first out', 'second in']
    assert ledger.lock_path.exists()


def test_exclusive_on_missing_ledger_is_read_error(tmp_path):
    ledger = WeeklyLedger(tmp_path / 'nodir' / 'weekly.csv')
    with pytest.raises(LedgerReadError, match='not found'):
        with ledger.exclusive():
            pass
    assert not (tmp_path / 'nodir').exists()


def test_append_keeps_crlf_line_endings(ledger_path):
    original = (
        HEADER.replace('\n', '\r\n')
        + '2024022609,Curry,800,定食,週代わり定食9番,2024-02-26,2024-03-03\r\n'
    ).encode('utf-8')
    ledger_path.write_bytes(original)

    WeeklyLedger(ledger_path).append(_week(date(2024, 3, 4)))

    data = ledger_path.read_bytes()
    assert data.startswith(original)
    added = data[len(original):]
    assert added.count(b'\r\n') == 2
    assert added.replace(b'\r\n', b'').count(b'\n') == 0
    assert WeeklyLedger(ledger_path).is_recorded('20240304') is True
