from datetime import datetime, timezone
from typing import Union

Timestamp = Union[datetime, str]


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse an ISO-8601 string (or pass a datetime through) as an aware UTC datetime.

    Naive values are taken to be UTC already.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Timestamp) -> str:
    """Canonical rendering used in seed material and published proofs.

    2026-02-13T12:00:00.000Z: UTC, millisecond precision, ``Z`` suffix.
    Sub-millisecond digits are truncated.
    """
    dt = parse_timestamp(value)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
