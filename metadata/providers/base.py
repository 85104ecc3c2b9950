import logging
from typing import Any, Protocol

import requests

from config.settings import PROVIDER_TIMEOUT_SECONDS
from metadata.types import CandidateRecord

logger = logging.getLogger(__name__)


class MetadataProvider(Protocol):
    name: str
    max_queries: int | None

    def search_candidates(self, query: str) -> list[CandidateRecord]:
        raise NotImplementedError

    def fetch_details(self, candidate: CandidateRecord) -> CandidateRecord | None:
        raise NotImplementedError


def request_json(session, url, *, params=None, headers=None, timeout=PROVIDER_TIMEOUT_SECONDS, label="provider"):
    """GET ``url`` and return the decoded JSON object, or None on any failure."""
    try:
        response = session.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException:
        logger.exception("%s request failed url=%s", label, url)
        return None
    if response.status_code != 200:
        logger.warning("%s request failed url=%s status=%s", label, url, response.status_code)
        return None
    try:
        payload = response.json()
    except ValueError:
        logger.warning("%s returned malformed JSON url=%s", label, url)
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def first_text(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def dedupe(values) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values:
        text = str(value or "").strip()
        if text and text not in seen:
            seen.append(text)
    return tuple(seen)
