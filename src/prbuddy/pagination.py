"""Opaque cursor pagination over an in-memory result list.

A cursor is URL-safe base64 over ``{"offset": int, "pageSize": int}``. Cursors
emitted here always decode; caller-supplied ones are validated and rejected
with :exc:`~prbuddy.errors.InvalidParamsError`.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from prbuddy.errors import InvalidParamsError

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
# Tokens from encode_cursor stay well under this length
MAX_CURSOR_LENGTH = 128


class Cursor(BaseModel):
    """Decoded pagination position."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    offset: int = Field(ge=0, strict=True)
    page_size: int = Field(alias="pageSize", ge=1, le=MAX_PAGE_SIZE, strict=True)


class Page(BaseModel):
    """One slice of a result list plus the cursor for the next slice."""

    items: list
    offset: int
    page_size: int
    total: int
    next_cursor: str | None = None


def encode_cursor(offset: int, page_size: int) -> str:
    """Encode a position as an opaque token.

    Raises:
        InvalidParamsError: If the position itself is out of range.
    """
    try:
        cursor = Cursor(offset=offset, page_size=page_size)
    except ValidationError as exc:
        msg = f"Cannot encode cursor for offset={offset}, page_size={page_size}"
        raise InvalidParamsError(msg) from exc
    raw = json.dumps(cursor.model_dump(by_alias=True), separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(token: str) -> Cursor:
    """Decode a caller-supplied cursor.

    Raises:
        InvalidParamsError: If the token is not base64, not JSON, or out of range.
    """
    if len(token) > MAX_CURSOR_LENGTH:
        msg = "Invalid cursor: not a token issued by this server"
        raise InvalidParamsError(msg)

    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
        data = json.loads(raw)
    except (binascii.Error, UnicodeError, ValueError, RecursionError) as exc:
        msg = "Invalid cursor: not a token issued by this server"
        raise InvalidParamsError(msg) from exc

    if not isinstance(data, dict):
        msg = "Invalid cursor: unexpected payload"
        raise InvalidParamsError(msg)

    try:
        return Cursor.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid cursor: offset must be >= 0 and pageSize within 1..{MAX_PAGE_SIZE}"
        raise InvalidParamsError(msg) from exc


def resolve_window(
    cursor: str | None,
    default_page_size: int,
    requested_page_size: int | None = None,
) -> tuple[int, int]:
    """Return ``(offset, page_size)`` for a request.

    The page size is clamped to *default_page_size* whatever the cursor or the
    request asks for. Decoding happens here so malformed cursors fail before
    any network work starts.
    """
    if requested_page_size is not None and requested_page_size < 1:
        msg = f"page_size must be positive, got {requested_page_size}"
        raise InvalidParamsError(msg)

    if cursor:
        decoded = decode_cursor(cursor)
        offset, wanted = decoded.offset, decoded.page_size
    else:
        offset, wanted = 0, requested_page_size or default_page_size

    return offset, min(wanted, default_page_size)


def paginate(items: Sequence[Any], offset: int, page_size: int) -> Page:
    """Slice *items* and compute the next cursor.

    ``next_cursor`` is set exactly when the slice ends before the list does.
    """
    end = offset + page_size
    next_cursor = encode_cursor(end, page_size) if end < len(items) else None
    logger.debug("Page offset=%d size=%d total=%d has_next=%s", offset, page_size, len(items), next_cursor is not None)
    return Page(
        items=list(items[offset:end]),
        offset=offset,
        page_size=page_size,
        total=len(items),
        next_cursor=next_cursor,
    )
