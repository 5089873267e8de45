from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from .base_client import THROTTLE_SLEEP_SECONDS, BaseClient
from .exceptions import ApiRateLimitError, MalformedHeaderError
from .pagination import Pagination, parse_link_header
from .rate_limit import REST

logger = logging.getLogger(__name__)

CALL_LIMIT_HEADER = 'X-Shopify-Shop-Api-Call-Limit'
MAX_RETRY_AFTER_SECONDS = 60.0


@dataclass
class RestResponse:
    body: Any
    pagination: Pagination = field(default_factory=Pagination)
    headers: Dict[str, str] = field(default_factory=dict)


def parse_call_limit(value: Optional[str]) -> Optional[int]:
    """Free slots from ``used/bucketSize``, or None when the header is absent or odd."""
    if not value:
        return None
    parts = value.split('/')
    if len(parts) != 2:
        return None
    try:
        used, bucket = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    return bucket - used


def parse_retry_after(value: Optional[str], default: float = THROTTLE_SLEEP_SECONDS) -> float:
    """Seconds to wait from ``Retry-After``, capped at MAX_RETRY_AFTER_SECONDS."""
    try:
        wait = float(value) if value else default
    except ValueError:
        return default
    if not math.isfinite(wait) or wait < 0:
        return default
    return min(wait, MAX_RETRY_AFTER_SECONDS)


class RestRequestEngine(BaseClient):
    """REST calls against the leaky call bucket.

    429 responses are retried after ``Retry-After`` up to ``max_retries``
    attempts. After each successful call the bucket header is read; when
    fewer than THRESHOLD slots remain the engine waits before handing the
    response back so the next call finds a refilled bucket.
    """
    RATE_LIMIT_MODEL = REST
    THRESHOLD = 2

    def call(self, method: str, path: str, params: Dict[str, Any] | None = None,
             body: Any | None = None) -> RestResponse:
        prepared = self._prepare(method, path, params=params, json_body=body)
        tries = self.config.max_retries
        resp: requests.Response
        for attempt in range(1, tries + 1):
            resp = self._send(prepared)
            if resp.status_code == 429:
                if attempt == tries:
                    raise ApiRateLimitError(f"Rate limit hit (429) after {attempt} attempts: {method.upper()} {path}")
                self._throttle_wait(parse_retry_after(resp.headers.get('Retry-After')), f"429 on attempt {attempt}")
                continue
            if resp.status_code >= 300:
                raise self._response_error(resp)
            break

        if self._observe(parse_call_limit(resp.headers.get(CALL_LIMIT_HEADER))):
            self._throttle_wait(THROTTLE_SLEEP_SECONDS, f"{CALL_LIMIT_HEADER}: {resp.headers.get(CALL_LIMIT_HEADER)}")

        data = self._decode_json(resp)
        link = resp.headers.get('Link', '')
        try:
            pagination = parse_link_header(link)
        except MalformedHeaderError as e:
            e.body = data
            raise
        return RestResponse(body=data, pagination=pagination, headers=dict(resp.headers))
