from __future__ import annotations
import logging
import time
from typing import Any, Dict, Optional

import requests

from .config import ClientConfig
from .exceptions import ApiAuthError, ApiRequestError, ApiResponseError, ApiTransportError
from .rate_limit import RateLimitState

logger = logging.getLogger(__name__)

THROTTLE_SLEEP_SECONDS = 2.0


class BaseClient:
    """Shared HTTP plumbing of the REST and GraphQL engines.

    Both engines of one client share the same session and RateLimitState.
    """
    RATE_LIMIT_MODEL: str = ''
    THRESHOLD: int = 0

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None,
                 state: Optional[RateLimitState] = None):
        self.config = config
        self.session = session or requests.Session()
        self.state = state or RateLimitState()

    def _headers(self) -> Dict[str, str]:
        return {
            'X-Shopify-Access-Token': self.config.access_token,
            'Accept': 'application/json',
            'Content-Type': 'application/json'
        }

    def _url(self, path: str) -> str:
        if path.startswith('http'):
            return path
        return self.config.base_url.rstrip('/') + '/' + path.lstrip('/')

    def _prepare(self, method: str, path: str, *, params: Dict[str, Any] | None = None,
                 json_body: Any | None = None) -> requests.PreparedRequest:
        req = requests.Request(method.upper(), self._url(path), params=params, headers=self._headers(), json=json_body)
        return self.session.prepare_request(req)

    def _send(self, prepared: requests.PreparedRequest) -> requests.Response:
        try:
            return self.session.send(prepared, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise ApiTransportError(f"Network error: {e}") from e

    def _throttle_wait(self, seconds: float, reason: str) -> None:
        logger.info('Shopify %s: sleeping %.1fs (%s)', self.RATE_LIMIT_MODEL, seconds, reason)
        time.sleep(seconds)

    def _observe(self, available: Optional[int]) -> bool:
        return self.state.observe(self.RATE_LIMIT_MODEL, available, self.THRESHOLD)

    @staticmethod
    def _decode_json(resp: requests.Response) -> Any:
        if not resp.content or not resp.content.strip():
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise ApiRequestError('Failed to decode JSON response') from e

    @staticmethod
    def _response_error(resp: requests.Response) -> ApiResponseError:
        """Build the error for a non-throttling failure, keeping Shopify's ``errors`` payload."""
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and 'errors' in payload:
            errors = payload['errors']
        elif isinstance(payload, dict) and 'error' in payload:
            errors = payload['error']
        else:
            errors = resp.text[:200] or resp.reason
        cls = ApiAuthError if resp.status_code in (401, 403) else ApiResponseError
        return cls(resp.status_code, errors)
