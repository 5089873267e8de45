from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from .exceptions import MalformedHeaderError

LINK_RE = re.compile(r'<([^<>]+)>;\s*rel="(previous|next)"')


@dataclass
class Pagination:
    """Cursor pair taken from a REST ``Link`` header. Empty string means no page."""
    previous: str = ''
    next: str = ''

    @property
    def has_next(self) -> bool:
        return bool(self.next)

    @property
    def has_previous(self) -> bool:
        return bool(self.previous)


def parse_link_header(value: Optional[str]) -> Pagination:
    """Parse ``<url>; rel="next", <url>; rel="previous"`` into a Pagination.

    Either entry is optional and an empty header is not an error.
    Raises MalformedHeaderError when any segment does not match.
    """
    pagination = Pagination()
    if not value or not value.strip():
        return pagination
    for segment in value.split(','):
        match = LINK_RE.fullmatch(segment.strip())
        if match is None:
            raise MalformedHeaderError(value)
        url, rel = match.groups()
        cursor = parse_qs(urlsplit(url).query).get('page_info', [''])[0]
        if rel == 'next':
            pagination.next = cursor
        else:
            pagination.previous = cursor
    return pagination
