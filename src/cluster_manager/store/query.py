"""Paging and filtering for list operations."""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from cluster_manager.errors import InvalidArgument

T = TypeVar("T")

MAX_PAGE_SIZE = 500
DEFAULT_PAGE_SIZE = 500


@dataclass(frozen=True)
class PageCursor:
    """Continuation state carried inside a page token."""
    after_seq: int
    high_water: int
    scope: str


def normalize_page_size(page_size: int) -> int:
    """0 selects the default; anything outside 0..500 is rejected."""
    if page_size < 0 or page_size > MAX_PAGE_SIZE:
        raise InvalidArgument(
            f"page_size must be between 0 and {MAX_PAGE_SIZE}, got {page_size}"
        )
    return page_size or DEFAULT_PAGE_SIZE


def query_scope(*parts: str) -> str:
    """Fingerprint binding a token to the query that produced it."""
    return hashlib.sha256("\x00".join(parts).encode("utf-8")).hexdigest()[:16]


def encode_page_token(cursor: PageCursor) -> str:
    payload = json.dumps(
        {"a": cursor.after_seq, "h": cursor.high_water, "s": cursor.scope},
        separators=(",", ":"),
    )
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_page_token(token: str) -> PageCursor:
    try:
        data = json.loads(base64.urlsafe_b64decode(token.encode("ascii")))
        return PageCursor(
            after_seq=int(data["a"]),
            high_water=int(data["h"]),
            scope=str(data["s"]),
        )
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        raise InvalidArgument(f"Invalid page token: {token!r}") from e


def parse_filter(expression: str, allowed: Iterable[str]) -> Optional[Tuple[str, str]]:
    """Parse a single ``key=value`` equality filter.

    Returns ``None`` for an empty expression.
    """
    expression = (expression or "").strip()
    if not expression:
        return None
    key, sep, value = expression.partition("=")
    key, value = key.strip(), value.strip().strip('"')
    allowed = list(allowed)
    if not sep or not key or not value or "=" in value:
        raise InvalidArgument(f"Filter must have the form key=value, got {expression!r}")
    if key not in allowed:
        raise InvalidArgument(
            f"Unsupported filter field {key!r}; expected one of {', '.join(allowed)}"
        )
    return key, value


def paginate(
    items: Sequence[T],
    seq_of: Callable[[T], int],
    page_size: int,
    page_token: str,
    scope: str,
    high_water: int,
) -> Tuple[List[T], str]:
    """Return one page of ``items`` in sequence order and the next token.

    The first page pins ``high_water``; later pages only return items whose
    sequence is at or below it, so concatenated pages cover exactly the
    items that existed when iteration started.
    """
    size = normalize_page_size(page_size)
    after = 0
    if page_token:
        cursor = decode_page_token(page_token)
        if cursor.scope != scope:
            raise InvalidArgument("Page token does not match this request")
        after, high_water = cursor.after_seq, cursor.high_water

    eligible = sorted(
        (item for item in items if after < seq_of(item) <= high_water),
        key=seq_of,
    )
    page = eligible[:size]
    next_token = ""
    if len(eligible) > size:
        next_token = encode_page_token(
            PageCursor(after_seq=seq_of(page[-1]), high_water=high_water, scope=scope)
        )
    return page, next_token
