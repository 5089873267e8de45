from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

import requests

from . import hmac_verifier, session_token
from .config import DEFAULT_TIMEOUT, env, load_env_file
from .exceptions import ApiAuthError, ApiRequestError, ApiResponseError, ApiTransportError, ConfigurationError
from .session_token import Payload

logger = logging.getLogger(__name__)

ACCESS_TOKEN_PATH = 'admin/oauth/access_token'


@dataclass
class AppCredentials:
    """Settings shared by every shop an app is installed on.

    ``redirect_url`` is held for callers that build the install redirect;
    ``scopes`` are the scopes the app requests and are checked against what
    the token exchange grants.
    """
    api_key: str
    api_secret: str
    redirect_url: str = ''
    scopes: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.api_key or not self.api_secret:
            raise ConfigurationError('api_key and api_secret are required')

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> 'AppCredentials':
        if env_file is not None:
            load_env_file(env_file)
        scopes = os.getenv('SHOPIFY_SCOPES', '')
        return cls(
            api_key=env('SHOPIFY_API_KEY'),  # type: ignore[arg-type]
            api_secret=env('SHOPIFY_API_SECRET'),  # type: ignore[arg-type]
            redirect_url=os.getenv('SHOPIFY_REDIRECT_URL', ''),
            scopes=[s.strip() for s in scopes.split(',') if s.strip()],
        )

    def __repr__(self) -> str:
        return f"AppCredentials(api_key={self.api_key!r}, api_secret='***', scopes={self.scopes!r})"

    def missing_scopes(self, granted: str) -> List[str]:
        """Requested scopes absent from a comma separated ``granted`` list.

        A ``write_x`` grant implies ``read_x``.
        """
        have = {s.strip() for s in granted.split(',') if s.strip()}
        have |= {'read_' + s[len('write_'):] for s in have if s.startswith('write_')}
        return [s for s in self.scopes if s not in have]

    def verify_callback(self, query: hmac_verifier.QueryInput) -> bool:
        """Check the ``hmac`` of an install/redirect query (``code, hmac, shop, state, timestamp``)."""
        valid = hmac_verifier.verify_oauth_query(self.api_secret, query)
        if not valid:
            logger.warning('OAuth callback hmac mismatch')
        return valid

    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> bool:
        return hmac_verifier.verify_webhook_request(self.api_secret, body, headers)

    def verify_session_token(self, token: str, **kwargs: Any) -> Payload:
        return session_token.validate_session_token(token, self.api_key, self.api_secret, **kwargs)

    def verify_session_request(self, headers: Mapping[str, str], **kwargs: Any) -> Payload:
        return session_token.verify_session_request(headers, self.api_key, self.api_secret, **kwargs)

    def exchange_access_token(self, shop: str, code: str, session: Optional[requests.Session] = None,
                              timeout: int = DEFAULT_TIMEOUT) -> str:
        """Trade the authorization ``code`` from the callback for a permanent access token."""
        if not shop or not code:
            raise ValueError('shop and code required')
        url = f"https://{shop}/{ACCESS_TOKEN_PATH}"
        payload = {'client_id': self.api_key, 'client_secret': self.api_secret, 'code': code}
        post = session.post if session is not None else requests.post
        try:
            resp = post(url, json=payload, headers={'Accept': 'application/json'}, timeout=timeout)
        except requests.RequestException as e:
            raise ApiTransportError(f"Network error: {e}") from e
        if resp.status_code >= 300:
            try:
                body = resp.json()
            except ValueError:
                body = None
            errors = None
            if isinstance(body, dict):
                errors = body.get('error_description') or body.get('errors')
            cls = ApiAuthError if resp.status_code in (400, 401, 403) else ApiResponseError
            raise cls(resp.status_code, errors or resp.text[:200])
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiRequestError('Failed to decode JSON response') from e
        token = data.get('access_token') if isinstance(data, dict) else None
        if not token:
            raise ApiRequestError('access token response has no access_token')
        granted = data.get('scope') or ''
        logger.info('Obtained access token for %s (scope=%s)', shop, granted)
        missing = self.missing_scopes(granted)
        if missing:
            logger.warning('%s did not grant requested scopes: %s', shop, ', '.join(missing))
        return token
