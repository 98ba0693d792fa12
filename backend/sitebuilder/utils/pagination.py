# sitebuilder/utils/pagination.py
"""
Keyset pagination over ``(created_at DESC, id DESC)``.

Cursors are opaque to clients: URL-safe base64 of ``<iso timestamp>|<id>``
taken from the last row of the previous page.
"""
from __future__ import annotations

import base64
import binascii
from datetime import datetime
from typing import Any, Optional, Tuple, Type, TypedDict

from sqlalchemy import Select, and_, or_
from sqlalchemy.orm import Session
from werkzeug.exceptions import BadRequest


class CursorMeta(TypedDict):
    has_more: bool
    next_cursor: Optional[str]


def encode_cursor(created_at: datetime, row_id: str) -> str:
    raw = f"{created_at.isoformat()}|{row_id}".encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> Tuple[datetime, str]:
    """Raises BadRequest for anything encode_cursor did not produce."""
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        ts, row_id = base64.urlsafe_b64decode(padded).decode().split("|", 1)
        return datetime.fromisoformat(ts), row_id
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise BadRequest("Invalid cursor") from exc


def paginate(
    session: Session,
    stmt: Select,
    *,
    model: Type[Any],
    cursor: Optional[str] = None,
    limit: int = 20,
) -> tuple[list[Any], CursorMeta]:
    """
    Run ``stmt`` one page at a time.

    One extra row is fetched to learn whether another page follows; only
    then is a next cursor issued.
    """
    if limit <= 0:
        raise BadRequest("Limit must be greater than zero")

    if cursor:
        after_ts, after_id = decode_cursor(cursor)
        stmt = stmt.where(
            or_(
                model.created_at < after_ts,
                and_(model.created_at == after_ts, model.id < after_id),
            )
        )

    rows = list(
        session.execute(
            stmt.order_by(model.created_at.desc(), model.id.desc()).limit(limit + 1)
        ).scalars()
    )

    items = rows[:limit]
    has_more = len(rows) > limit
    next_cursor = encode_cursor(items[-1].created_at, items[-1].id) if has_more else None

    return items, {"has_more": has_more, "next_cursor": next_cursor}
