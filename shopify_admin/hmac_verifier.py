"""HMAC-SHA256 signing and constant-time verification.

Three call sites share this module:

* OAuth callback: the query string minus ``hmac``, sorted and re-encoded,
  signed with the app secret; Shopify sends the digest hex encoded.
* Webhooks: the raw body bytes; the ``X-Shopify-Hmac-SHA256`` header carries
  base64 of the hex digest.
* Session tokens: ``header.payload`` of the token (see session_token.py).

Every function here is pure: no state is kept between calls.
"""
from __future__ import annotations
import base64
import binascii
import hashlib
import hmac
import logging
from typing import Iterable, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode

from requests.structures import CaseInsensitiveDict

logger = logging.getLogger(__name__)

WEBHOOK_HMAC_HEADER = 'X-Shopify-Hmac-SHA256'

QueryInput = Union[str, bytes, Mapping[str, str], Iterable[Tuple[str, str]]]


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode('utf-8') if isinstance(value, str) else value


def sign(secret: Union[str, bytes], message: Union[str, bytes]) -> bytes:
    """Raw HMAC-SHA256 digest of ``message`` under ``secret``."""
    return hmac.new(_to_bytes(secret), _to_bytes(message), hashlib.sha256).digest()


def verify(secret: Union[str, bytes], message: Union[str, bytes], provided_mac: bytes) -> bool:
    """True when ``provided_mac`` equals the digest of ``message``; constant time."""
    return hmac.compare_digest(sign(secret, message), provided_mac)


def _query_pairs(query: QueryInput) -> list:
    if isinstance(query, bytes):
        query = query.decode('utf-8')
    if isinstance(query, str):
        return parse_qsl(query.lstrip('?'), keep_blank_values=True)
    if isinstance(query, Mapping):
        return list(query.items())
    return list(query)


def oauth_message(query: QueryInput) -> Tuple[str, Optional[str]]:
    """Split a callback query into (signed message, provided hmac).

    Values are percent-decoded, ``hmac`` is removed, and the rest is
    re-encoded with keys sorted. Repeated keys keep their relative order.
    """
    provided = None
    pairs = []
    for key, value in _query_pairs(query):
        if key == 'hmac':
            provided = value
            continue
        pairs.append((key, value))
    pairs.sort(key=lambda kv: kv[0])
    return urlencode(pairs), provided


def verify_oauth_query(secret: Union[str, bytes], query: QueryInput) -> bool:
    """Verify the ``hmac`` parameter of an OAuth install callback."""
    message, provided = oauth_message(query)
    if not provided:
        logger.info('OAuth callback without hmac parameter')
        return False
    try:
        provided_mac = bytes.fromhex(provided)
    except ValueError:
        logger.info('OAuth callback hmac is not valid hex')
        return False
    return verify(secret, message, provided_mac)


def webhook_signature(secret: Union[str, bytes], body: bytes) -> str:
    """Header value Shopify sends for ``body``: base64 of the hex digest."""
    hex_digest = sign(secret, body).hex()
    return base64.b64encode(hex_digest.encode('ascii')).decode('ascii')


def verify_webhook(secret: Union[str, bytes], body: bytes, signature: Optional[str]) -> bool:
    """Verify a webhook body against its ``X-Shopify-Hmac-SHA256`` value.

    ``body`` must be the complete raw request body, read before anything is
    forwarded downstream.
    """
    if not signature:
        return False
    expected = webhook_signature(secret, body)
    return hmac.compare_digest(expected.encode('ascii'), _to_bytes(signature))


def verify_webhook_request(secret: Union[str, bytes], body: bytes, headers: Mapping[str, str]) -> bool:
    """Same as verify_webhook, reading the signature from request headers (any case)."""
    signature = CaseInsensitiveDict(headers).get(WEBHOOK_HMAC_HEADER)
    valid = verify_webhook(secret, body, signature)
    if not valid:
        logger.warning('Webhook signature mismatch (%d body bytes)', len(body))
    return valid


def b64url_decode(segment: str) -> bytes:
    """Decode unpadded base64url. Raises ValueError on bad input."""
    padded = segment + '=' * (-len(segment) % 4)
    try:
        return base64.b64decode(padded.encode('ascii'), altchars=b'-_', validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64url segment: {e}") from e
