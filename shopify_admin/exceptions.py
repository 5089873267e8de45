from __future__ import annotations
from typing import Any, Dict, List, Optional


class ApiRequestError(Exception):
    """Generic API request error (base of every error raised by this package)."""


class ConfigurationError(ApiRequestError):
    """Missing or invalid configuration value."""


class ApiTransportError(ApiRequestError):
    """Network, DNS or TLS failure before a response was received."""


class ApiRateLimitError(ApiRequestError):
    """Throttled on every attempt (REST 429 or GraphQL THROTTLED/MAX_COST_EXCEEDED)."""


class ApiResponseError(ApiRequestError):
    """Non-throttling error response (REST status >= 300, GraphQL non-200).

    The ``errors`` payload Shopify returns is either a single string or an
    object/array of field level messages. It is resolved once here into
    ``message`` or ``field_errors`` so callers never inspect the raw shape.
    """

    def __init__(self, status: int, errors: Any = None):
        self.status = status
        self.errors = errors
        self.message: Optional[str] = None
        self.field_errors: Dict[str, List[str]] = {}
        if isinstance(errors, dict):
            for field, msgs in errors.items():
                if isinstance(msgs, list):
                    self.field_errors[str(field)] = [str(m) for m in msgs]
                else:
                    self.field_errors[str(field)] = [str(msgs)]
        elif isinstance(errors, list):
            self.field_errors['base'] = [str(m) for m in errors]
        elif errors is not None:
            self.message = str(errors)
        super().__init__(f"HTTP {status}: {self.describe()}")

    def describe(self) -> str:
        if self.message is not None:
            return self.message
        if self.field_errors:
            return '; '.join(f"{k}: {', '.join(v)}" for k, v in self.field_errors.items())
        return 'no error details'


class ApiAuthError(ApiResponseError):
    """Authentication or authorization failure (401/403)."""


class GraphqlError(ApiRequestError):
    """Non-throttling GraphQL error; carries the first reported message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MalformedHeaderError(ApiRequestError):
    """Pagination ``Link`` header did not match ``<url>; rel="next|previous"``.

    The request itself succeeded, so the decoded body is kept on ``body``.
    """

    def __init__(self, header: str, body: Any = None):
        self.header = header
        self.body = body
        super().__init__(f"Invalid pagination link header: {header[:200]!r}")


class SessionTokenError(ApiRequestError):
    """Session token rejected. ``status_code`` is what the HTTP layer should answer."""
    status_code = 400
    default_message = 'session token is invalid'

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class NoTokenFound(SessionTokenError):
    status_code = 400
    default_message = 'no token found'


class InvalidToken(SessionTokenError):
    status_code = 400
    default_message = 'session token is invalid'


class TokenExpired(SessionTokenError):
    status_code = 401
    default_message = 'session token has expired'


class SignatureInvalid(SessionTokenError):
    status_code = 401
    default_message = 'session token signature is invalid'
