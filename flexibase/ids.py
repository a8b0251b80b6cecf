"""
Identifier and timestamp helpers.

Invariants:
    - Timestamps are ISO-8601 UTC with millisecond precision and a "Z" suffix,
      so lexicographic order equals chronological order
    - Generated ids are "<prefix>_<unix ms>_<9 base36 chars>"
"""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timezone

_ALPHABET = string.digits + string.ascii_lowercase


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(moment: datetime) -> str:
    """Format an aware or naive-UTC datetime the way documents store it."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Raises:
        ValueError: If value is not an ISO-8601 timestamp
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def generate_id(prefix: str) -> str:
    """Generate a unique identifier, e.g. rec_1760779800123_k3j9x0a1b."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"
