"""
feed.py - Find the newest weekly set-meal post on the canteen's feed.

The canteen does not use a single hashtag consistently, so several queries
are tried (each restricted to the canteen's own account) and the newest
post across all of them wins. Only the first status of each query is
considered: the standard search API returns recent posts first and only
covers about 7 days, so one post per query is expected.

The post's created_at timestamp is the reference date for the week.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import requests

from weekly_menu.errors import FeedError

log = logging.getLogger(__name__)

SEARCH_URL = 'https://api.twitter.com/1.1/search/tweets.json'

DEFAULT_ACCOUNT = 'shokujinjp'
DEFAULT_QUERIES = [
    '今週の週替わり定食',
    '今週の週変わり定食',
    '#食神週替わり定食',
]

# e.g. "Mon Mar 04 12:00:00 +0900 2024"
CREATED_AT_FORMAT = '%a %b %d %H:%M:%S %z %Y'


@dataclass
class Post:
    id: str
    text: str
    created_at: datetime
    media_urls: list[str] = field(default_factory=list)

    @property
    def photo_url(self) -> str:
        """URL of the first attached photo (the menu sign)."""
        if not self.media_urls:
            raise FeedError(f'post {self.id} has no attached photo')
        return self.media_urls[0]


def parse_created_at(value: str) -> datetime:
    """
    Parse the feed's created_at string into an aware datetime.

    Raises:
        ValueError: value does not match CREATED_AT_FORMAT
    """
    return datetime.strptime(value, CREATED_AT_FORMAT)


def _media_urls(status: dict) -> list[str]:
    entities = status.get('extended_entities') or status.get('entities') or {}
    urls = []
    for media in entities.get('media', []):
        url = media.get('media_url_https') or media.get('media_url')
        if url:
            urls.append(url)
    return urls


def post_from_status(status: dict) -> Post:
    """
    Build a Post from one search API status object.

    Raises:
        ValueError: created_at missing or unparsable
    """
    created_at = status.get('created_at')
    if not created_at:
        raise ValueError('status has no created_at')
    return Post(
        id=str(status.get('id_str') or status.get('id', '')),
        text=status.get('full_text') or status.get('text', ''),
        created_at=parse_created_at(created_at),
        media_urls=_media_urls(status),
    )


class TwitterFeed:
    """
    Searches the canteen's account for weekly set-meal posts.

    Args:
        bearer_token: App-only bearer token for the search API
        account:      Screen name the posts must come from
        queries:      Search phrases, tried in order
        session:      Optional requests.Session (shared / for tests)
        timeout:      HTTP timeout in seconds
    """

    def __init__(self,
                 bearer_token: str,
                 account: str = DEFAULT_ACCOUNT,
                 queries: Optional[list[str]] = None,
                 session: Optional[requests.Session] = None,
                 timeout: float = 10.0):
        self.account = account
        self.queries = list(queries or DEFAULT_QUERIES)
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({'Authorization': f'Bearer {bearer_token}'})

    def search(self, query: str) -> list[dict]:
        """
        Run one search restricted to the account and return raw statuses.

        Raises:
            FeedError: HTTP or network failure, or a non-JSON response
        """
        q = f'{query} from:{self.account}'
        log.debug(f'Searching: {q}')
        try:
            resp = self._session.get(
                SEARCH_URL,
                params={
                    'q': q,
                    'result_type': 'recent',
                    'include_entities': 'true',
                    'tweet_mode': 'extended',
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            raise FeedError(f'search failed for {q!r}: {e}') from e
        except ValueError as e:
            raise FeedError(f'search returned invalid JSON for {q!r}: {e}') from e
        return data.get('statuses', [])

    def newest_post(self) -> Post:
        """
        Return the newest post across all queries.

        Raises:
            FeedError: no query returned a usable post, or a search failed
        """
        newest: Optional[Post] = None

        for query in self.queries:
            statuses = self.search(query)
            if not statuses:
                log.info(f'No post for query {query!r}')
                continue

            try:
                post = post_from_status(statuses[0])
            except ValueError as e:
                log.warning(f'Skipping post with bad created_at ({query!r}): {e}')
                continue

            if newest is None or post.created_at > newest.created_at:
                newest = post

        if newest is None:
            raise FeedError('missing post')

        log.info(f'Newest post: {newest.id} at {newest.created_at.isoformat()}')
        return newest
