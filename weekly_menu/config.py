"""
config.py - Settings from config/config.yaml and environment variables.

Precedence (highest first): CLI flag > environment variable > YAML > default.
The YAML file is optional; a scheduled run can be configured entirely from
the environment.

config/config.yaml:

  ledger_path: weekly.csv
  lock: true
  feed:
    account: shokujinjp
    queries: [今週の週替わり定食, 今週の週変わり定食, "#食神週替わり定食"]
    timeout: 10
  vision:
    timeout: 30
  extraction:
    strict_slots: false
    fold_width: false

Environment:
  WEEKLY_LEDGER    ledger path
  TW_BEARER_TOKEN  search API bearer token
  SA_JSON          service account JSON for Cloud Vision
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from weekly_menu.errors import ConfigError
from weekly_menu.feed import DEFAULT_ACCOUNT, DEFAULT_QUERIES

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config/config.yaml'
DEFAULT_LEDGER_PATH = 'weekly.csv'


@dataclass
class Settings:
    ledger_path: str = DEFAULT_LEDGER_PATH
    lock: bool = True
    feed_account: str = DEFAULT_ACCOUNT
    feed_queries: list[str] = field(default_factory=lambda: list(DEFAULT_QUERIES))
    feed_timeout: float = 10.0
    vision_timeout: float = 30.0
    strict_slots: bool = False
    fold_width: bool = False
    bearer_token: Optional[str] = None
    sa_json_var: str = 'SA_JSON'

    def require_bearer_token(self) -> str:
        if not self.bearer_token:
            raise ConfigError('TW_BEARER_TOKEN is not set (search API bearer token)')
        return self.bearer_token


def _load_yaml(path: Path) -> dict:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f'invalid YAML in {path}: {e}') from e
    if not isinstance(data, dict):
        raise ConfigError(f'{path} must contain a mapping, got {type(data).__name__}')
    return data


def _section(data: dict, name: str) -> dict:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f'config section {name!r} must be a mapping')
    return value


def _flag(section: dict, name: str, default: bool, where: str) -> bool:
    value = section.get(name, default)
    if not isinstance(value, bool):
        raise ConfigError(f'{where} must be true or false, got {value!r}')
    return value


def load_settings(config_path: Optional[str] = None,
                  env: Optional[dict] = None) -> Settings:
    """
    Build Settings from the YAML file (if present) and the environment.

    An explicitly given config_path must exist; the default path is optional.
    """
    env = os.environ if env is None else env
    settings = Settings()

    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if path.exists():
        data = _load_yaml(path)
        log.debug(f'Loaded config from {path}')
    elif config_path:
        raise ConfigError(f'config file not found: {path}')
    else:
        data = {}

    feed = _section(data, 'feed')
    vision = _section(data, 'vision')
    extraction = _section(data, 'extraction')

    try:
        settings.ledger_path = str(data.get('ledger_path', settings.ledger_path))
        settings.lock = _flag(data, 'lock', settings.lock, 'lock')
        settings.feed_account = feed.get('account', settings.feed_account)
        settings.feed_queries = list(feed.get('queries', settings.feed_queries))
        settings.feed_timeout = float(feed.get('timeout', settings.feed_timeout))
        settings.vision_timeout = float(vision.get('timeout', settings.vision_timeout))
        settings.strict_slots = _flag(extraction, 'strict_slots', settings.strict_slots,
                                      'extraction.strict_slots')
        settings.fold_width = _flag(extraction, 'fold_width', settings.fold_width,
                                    'extraction.fold_width')
    except (TypeError, ValueError) as e:
        raise ConfigError(f'invalid value in {path}: {e}') from e

    if not settings.feed_queries:
        raise ConfigError('feed.queries must list at least one query')

    if env.get('WEEKLY_LEDGER'):
        settings.ledger_path = env['WEEKLY_LEDGER']
    settings.bearer_token = env.get('TW_BEARER_TOKEN') or None

    return settings
