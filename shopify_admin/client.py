from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import requests

from .config import DEFAULT_API_VERSION, DEFAULT_RETRIES, DEFAULT_TIMEOUT, ClientConfig
from .graphql import GraphQLRequestEngine
from .rate_limit import RateLimitState
from .rest import RestRequestEngine, RestResponse

logger = logging.getLogger(__name__)


class ShopifyClient:
    """Shopify Admin API client (REST + GraphQL) for one shop.

    Options are applied once here; the resulting ClientConfig is frozen. Both
    engines share one session and one RateLimitState.
    """

    def __init__(self, shop_domain: str, access_token: str, *, api_version: str = DEFAULT_API_VERSION,
                 timeout: int = DEFAULT_TIMEOUT, max_retries: int = DEFAULT_RETRIES,
                 session: Optional[requests.Session] = None):
        config = ClientConfig(shop_domain, access_token, api_version, timeout, max_retries)
        self.config = config
        self.session = session or requests.Session()
        self.rate_limit = RateLimitState()
        self.rest = RestRequestEngine(config, self.session, self.rate_limit)
        self.graphql_engine = GraphQLRequestEngine(config, self.session, self.rate_limit)

    @classmethod
    def from_config(cls, config: ClientConfig, session: Optional[requests.Session] = None) -> 'ShopifyClient':
        return cls(config.shop_domain, config.access_token, api_version=config.api_version,
                   timeout=config.timeout, max_retries=config.max_retries, session=session)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> 'ShopifyClient':
        return cls.from_config(ClientConfig.from_env(env_file))

    @property
    def available_calls(self) -> Optional[int]:
        return self.rate_limit.available

    def get(self, path: str, params: Dict[str, Any] | None = None) -> RestResponse:
        return self.rest.call('GET', path, params=params)

    def post(self, path: str, body: Any) -> RestResponse:
        return self.rest.call('POST', path, body=body)

    def put(self, path: str, body: Any) -> RestResponse:
        return self.rest.call('PUT', path, body=body)

    def delete(self, path: str) -> RestResponse:
        return self.rest.call('DELETE', path)

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.graphql_engine.call(query, variables)

    def iter_pages(self, path: str, resource: str, params: Dict[str, Any] | None = None,
                   max_pages: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        """Yield items of ``resource`` (e.g. ``'products'``) across cursor pages.

        Shopify only accepts ``limit`` next to ``page_info``, so other filters
        apply to the first page only.
        """
        page_params: Dict[str, Any] = dict(params or {})
        pages_fetched = 0
        while max_pages is None or pages_fetched < max_pages:
            res = self.get(path, params=page_params)
            items = res.body.get(resource, []) if isinstance(res.body, dict) else []
            yield from items
            pages_fetched += 1
            if not res.pagination.next:
                break
            logger.debug('%s: following page_info cursor (page %d)', path, pages_fetched + 1)
            page_params = {'page_info': res.pagination.next}
            if params and 'limit' in params:
                page_params['limit'] = params['limit']
