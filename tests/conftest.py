"""Pytest configuration shared across the suite."""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from weekly_menu.ledger import WeeklyLedger  # noqa: E402

HEADER = 'id,name,price,category,description,dayStart,dayEnd\n'


@pytest.fixture
def ledger_path(tmp_path):
    path = tmp_path / 'weekly.csv'
    path.write_text(HEADER, encoding='utf-8')
    return path


@pytest.fixture
def ledger(ledger_path):
    return WeeklyLedger(ledger_path)


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self._payload = payload
        self.status_code = status_code
        self.text = text if text is not None else ''

    def raise_for_status(self):
        import requests
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error', response=self)

    def json(self):
        if self._payload is None:
            raise ValueError('no JSON')
        return self._payload


class FakeSession:
    """Records calls and replays canned responses keyed by call order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next('GET', url, kwargs)

    def post(self, url, **kwargs):
        return self._next('POST', url, kwargs)
