"""Embedded app session tokens.

A session token is a compact three part HS256 token (``header.payload.signature``)
sent by the admin as ``Authorization: Bearer <token>``. Validation runs in
three stages: decode, claims, signature. Claims are checked first, so a
claims error does not mean the signature was verified.
"""
from __future__ import annotations
import logging
import math
import re
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

import jwt
from requests.structures import CaseInsensitiveDict

from .exceptions import InvalidToken, NoTokenFound, SignatureInvalid, TokenExpired
from .hmac_verifier import b64url_decode, verify

logger = logging.getLogger(__name__)

SHOP_HOST_RE = re.compile(r'[a-zA-Z0-9][a-zA-Z0-9-]*\.myshopify\.com')

_STR_CLAIMS = ('iss', 'dest', 'aud', 'sub', 'jti', 'sid')
_INT_CLAIMS = ('exp', 'nbf', 'iat')


@dataclass
class Payload:
    """Session token claims. Timestamps are seconds since epoch, 0 when unset."""
    iss: str = ''
    dest: str = ''
    aud: str = ''
    sub: str = ''
    exp: int = 0
    nbf: int = 0
    iat: int = 0
    jti: str = ''
    sid: str = ''

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> 'Payload':
        values: Dict[str, Any] = {}
        for name in _STR_CLAIMS:
            raw = claims.get(name)
            if raw is None:
                continue
            if not isinstance(raw, str):
                raise InvalidToken(f"claim {name!r} must be a string")
            values[name] = raw
        for name in _INT_CLAIMS:
            raw = claims.get(name)
            if raw is None:
                continue
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise InvalidToken(f"claim {name!r} must be a number")
            if isinstance(raw, float) and not math.isfinite(raw):
                raise InvalidToken(f"claim {name!r} must be finite")
            values[name] = int(raw)
        return cls(**values)

    @property
    def shop(self) -> str:
        """Shop hostname the token was issued for (e.g. ``name.myshopify.com``)."""
        return urlsplit(self.dest).hostname or ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _split(token: str) -> list:
    parts = token.split('.') if token else []
    if len(parts) != 3 or not all(parts):
        raise InvalidToken('session token must have three segments')
    return parts


def _hostname(url: str) -> str:
    try:
        return urlsplit(url).hostname or ''
    except ValueError as e:
        raise InvalidToken(f"unparseable url in token: {e}") from e


def check_claims(payload: Payload, api_key: str, now: Optional[int] = None, leeway: int = 0) -> None:
    """Claims checks in order, stopping at the first failure."""
    now = int(time.time()) if now is None else now
    if payload.exp == 0 or now >= payload.exp + leeway:
        raise TokenExpired()
    if payload.nbf == 0 or payload.nbf > now + leeway:
        raise InvalidToken('session token is not active yet')
    if payload.iat == 0 or payload.iat > now + leeway:
        raise InvalidToken('session token issued in the future')
    if payload.aud != api_key:
        raise InvalidToken('session token audience mismatch')
    iss_host = _hostname(payload.iss)
    dest_host = _hostname(payload.dest)
    if iss_host != dest_host:
        raise InvalidToken('session token issuer and destination differ')
    if not SHOP_HOST_RE.fullmatch(dest_host):
        raise InvalidToken('session token destination is not a shop domain')


def decode_session_token(token: str, api_key: str, now: Optional[int] = None, leeway: int = 0) -> Payload:
    """Decode the payload segment and validate its claims. The signature is NOT checked."""
    _split(token)
    try:
        claims = jwt.decode(
            token,
            options={
                'verify_signature': False,
                'verify_exp': False,
                'verify_nbf': False,
                'verify_iat': False,
                'verify_aud': False,
                'verify_iss': False,
            },
        )
    except jwt.InvalidTokenError as e:
        raise InvalidToken(f"undecodable session token: {e}") from e
    payload = Payload.from_claims(claims)
    check_claims(payload, api_key, now=now, leeway=leeway)
    return payload


def verify_token_signature(token: str, secret: str) -> None:
    """Recompute HMAC-SHA256 over ``header.payload`` and compare with the third segment."""
    header, body, signature = _split(token)
    try:
        provided = b64url_decode(signature)
    except ValueError as e:
        raise InvalidToken(str(e)) from e
    if not verify(secret, f"{header}.{body}", provided):
        raise SignatureInvalid()


def validate_session_token(
    token: str,
    api_key: str,
    secret: str,
    now: Optional[int] = None,
    leeway: int = 0,
    signature_first: bool = False,
) -> Payload:
    """Full validation: decode, claims, signature.

    With ``signature_first`` the HMAC is checked before any claim, so an
    unauthenticated token never learns which claim it failed.
    """
    if not token:
        raise NoTokenFound()
    if signature_first:
        verify_token_signature(token, secret)
        return decode_session_token(token, api_key, now=now, leeway=leeway)
    payload = decode_session_token(token, api_key, now=now, leeway=leeway)
    verify_token_signature(token, secret)
    return payload


def token_from_header(authorization: Optional[str]) -> str:
    """Token part of ``Bearer <token>``, or '' when absent or malformed."""
    if not authorization or len(authorization) <= 7:
        return ''
    scheme, _, token = authorization.partition(' ')
    if scheme.upper() != 'BEARER':
        return ''
    return token.strip()


def verify_session_request(
    headers: Mapping[str, str],
    api_key: str,
    secret: str,
    **kwargs: Any,
) -> Payload:
    """Validate the bearer token of an inbound request.

    The hosting HTTP layer calls this before dispatch and stores the returned
    Payload on its request context; on SessionTokenError it answers with the
    error's ``status_code``.
    """
    token = token_from_header(CaseInsensitiveDict(headers).get('Authorization'))
    if not token:
        raise NoTokenFound()
    try:
        return validate_session_token(token, api_key, secret, **kwargs)
    except (InvalidToken, TokenExpired, SignatureInvalid) as e:
        logger.info('Session token rejected: %s', e)
        raise
