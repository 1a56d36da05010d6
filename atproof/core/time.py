"""
atproof/core/time.py

Record timestamp for createdAt.

Wire format: YYYY-MM-DDTHH:MM:SS.mmmZ
             (milliseconds, explicit Z, no +00:00, no microseconds)
"""

import re
from datetime import datetime, timezone

RECORD_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})$"
)


def record_timestamp() -> str:
    """
    Return current UTC time in record wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"


def is_record_timestamp(value: str) -> bool:
    """Loose RFC 3339 check. Records written by other clients may omit ms."""
    return isinstance(value, str) and bool(RECORD_TIMESTAMP_RE.match(value))
