"""Opaque cursor helpers for keyset pagination (ORDER BY id DESC)."""

import base64
import json


def cursor_encode(last_id: int | str) -> str:
    """Encode the last seen primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.urlsafe_b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | str | None:
    """Decode a cursor back to the last seen id. Returns None on a malformed cursor."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        value = payload["id"]
    except (ValueError, KeyError, TypeError):
        return None
    return value if isinstance(value, (int, str)) else None
