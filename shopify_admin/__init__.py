"""Shopify Admin API client: REST and GraphQL engines plus request verification.

Usage example:
    from shopify_admin import ShopifyClient, AppCredentials
    client = ShopifyClient.from_env()
    res = client.get('products.json', params={'limit': 50})
    products, cursor = res.body['products'], res.pagination.next

    app = AppCredentials.from_env()
    payload = app.verify_session_request(request.headers)
"""
from .client import ShopifyClient  # noqa: F401
from .config import ClientConfig  # noqa: F401
from .exceptions import (  # noqa: F401
    ApiAuthError,
    ApiRateLimitError,
    ApiRequestError,
    ApiResponseError,
    ApiTransportError,
    ConfigurationError,
    GraphqlError,
    InvalidToken,
    MalformedHeaderError,
    NoTokenFound,
    SessionTokenError,
    SignatureInvalid,
    TokenExpired,
)
from .oauth import AppCredentials  # noqa: F401
from .pagination import Pagination, parse_link_header  # noqa: F401
from .rest import RestResponse  # noqa: F401
from .session_token import Payload  # noqa: F401
