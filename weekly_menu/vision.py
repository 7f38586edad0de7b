"""
vision.py - OCR the menu sign with the Google Cloud Vision REST API.

Authenticates with a service account (google-auth) and sends a single
DOCUMENT_TEXT_DETECTION request pointing at the photo's public URL, so the
image never has to be downloaded locally.

The service-account JSON is taken from the SA_JSON environment variable by
default (the scheduler injects it as a secret).
"""

import json
import logging
import os
from typing import Optional

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2.service_account import Credentials

from weekly_menu.errors import ConfigError, OCRError

log = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/cloud-platform']
ANNOTATE_URL = 'https://vision.googleapis.com/v1/images:annotate'


def build_payload(image_uri: str) -> dict:
    return {
        'requests': [
            {
                'image': {'source': {'imageUri': image_uri}},
                'features': [{'type': 'DOCUMENT_TEXT_DETECTION', 'maxResults': 10}],
            }
        ]
    }


def full_text(response: dict) -> str:
    """
    Pull fullTextAnnotation.text out of an annotate response.

    Raises:
        OCRError: the response carries an error or no text annotation
    """
    responses = response.get('responses') or []
    if not responses:
        raise OCRError('Vision returned no responses')

    first = responses[0]
    if 'error' in first:
        err = first['error']
        raise OCRError(f'Vision error {err.get("code")}: {err.get("message")}')

    text = (first.get('fullTextAnnotation') or {}).get('text')
    if not text:
        raise OCRError('Vision found no text in the image')
    return text


class VisionClient:
    """
    Minimal Cloud Vision client for document text detection.

    Args:
        credentials: google-auth service account credentials
        timeout:     HTTP timeout in seconds
        session:     Optional pre-built session (tests)
    """

    def __init__(self, credentials: Optional[Credentials] = None,
                 timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        if session is None:
            if credentials is None:
                raise ConfigError('VisionClient needs credentials or a session')
            session = AuthorizedSession(credentials)
        self._session = session
        self.timeout = timeout

    @classmethod
    def from_service_account_info(cls, info: dict, **kwargs) -> 'VisionClient':
        try:
            creds = Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, KeyError) as e:
            raise ConfigError(f'invalid service account JSON: {e}') from e
        log.debug(f'Vision service account: {creds.service_account_email}')
        return cls(creds, **kwargs)

    @classmethod
    def from_env(cls, var: str = 'SA_JSON', **kwargs) -> 'VisionClient':
        """Build a client from service-account JSON held in an env var."""
        raw = os.environ.get(var)
        if not raw:
            raise ConfigError(f'{var} is not set (service account JSON for Cloud Vision)')
        try:
            info = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(f'{var} is not valid JSON: {e}') from e
        return cls.from_service_account_info(info, **kwargs)

    def annotate(self, image_uri: str) -> dict:
        """
        Send the annotate request and return the decoded JSON response.

        Raises:
            OCRError: HTTP, network or token refresh failure
        """
        log.info(f'OCR request: {image_uri}')
        try:
            resp = self._session.post(
                ANNOTATE_URL,
                json=build_payload(image_uri),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise OCRError(f'Vision request failed: {e}') from e
        except GoogleAuthError as e:
            raise OCRError(f'Vision authentication failed: {e}') from e
        except ValueError as e:
            raise OCRError(f'Vision returned invalid JSON: {e}') from e

    def detect_text(self, image_uri: str) -> str:
        """Return the full OCR text for the image at image_uri."""
        text = full_text(self.annotate(image_uri))
        log.debug(f'OCR text ({len(text)} chars): {text!r}')
        return text
