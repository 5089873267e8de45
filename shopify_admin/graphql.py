from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from .base_client import THROTTLE_SLEEP_SECONDS, BaseClient
from .exceptions import ApiRateLimitError, ApiRequestError, GraphqlError
from .rate_limit import GRAPHQL

logger = logging.getLogger(__name__)

THROTTLE_CODES = frozenset({'MAX_COST_EXCEEDED', 'THROTTLED'})


def is_throttled(errors: List[Any]) -> bool:
    for err in errors:
        if not isinstance(err, dict):
            continue
        ext = err.get('extensions')
        if isinstance(ext, dict) and ext.get('code') in THROTTLE_CODES:
            return True
    return False


def first_error_message(errors: List[Any]) -> str:
    if errors and isinstance(errors[0], dict) and isinstance(errors[0].get('message'), str):
        return errors[0]['message']
    return f"GraphQL error: {str(errors)[:200]}"


def currently_available(extensions: Any) -> Optional[int]:
    """``extensions.cost.throttleStatus.currentlyAvailable`` if present and numeric."""
    if not isinstance(extensions, dict):
        return None
    cost = extensions.get('cost')
    if not isinstance(cost, dict):
        return None
    status = cost.get('throttleStatus')
    if not isinstance(status, dict):
        return None
    value = status.get('currentlyAvailable')
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class GraphQLRequestEngine(BaseClient):
    """GraphQL calls against the cost budget.

    Throttling arrives as HTTP 200 with a THROTTLED or MAX_COST_EXCEEDED error
    code and is retried after a fixed wait. Any other GraphQL error fails the
    call right away.
    """
    RATE_LIMIT_MODEL = GRAPHQL
    THRESHOLD = 50

    def call(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {'query': query}
        if variables is not None:
            envelope['variables'] = variables
        prepared = self._prepare('POST', 'graphql.json', json_body=envelope)
        tries = self.config.max_retries
        for attempt in range(1, tries + 1):
            resp = self._send(prepared)
            if resp.status_code != 200:
                raise self._response_error(resp)
            result = self._decode_json(resp)
            if not isinstance(result, dict):
                raise ApiRequestError('GraphQL response is not a JSON object')

            errors = result.get('errors')
            if errors:
                if not isinstance(errors, list):
                    errors = [errors]
                if is_throttled(errors):
                    if attempt == tries:
                        raise ApiRateLimitError(f"GraphQL throttled after {attempt} attempts")
                    self._throttle_wait(THROTTLE_SLEEP_SECONDS, f"throttled on attempt {attempt}")
                    continue
                raise GraphqlError(first_error_message(errors))

            if self._observe(currently_available(result.get('extensions'))):
                self._throttle_wait(THROTTLE_SLEEP_SECONDS, f"cost budget low ({self.state.available} available)")
            return result.get('data') or {}
        raise ApiRateLimitError('GraphQL throttled')
