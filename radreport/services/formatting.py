"""Row shaping helpers shared by the report and agenda services."""

import logging
import math
from datetime import date, datetime
from typing import Any, Dict, Optional

import pandas as pd

from radreport.models import RadAcct

logger = logging.getLogger(__name__)

BYTES_PER_GB = 1024 ** 3

_RECORD_COLUMNS = [column.name for column in RadAcct.__table__.columns]
_TIMESTAMP_COLUMNS = ("acctstarttime", "acctstoptime")


def _to_utc(value: Any) -> Optional[pd.Timestamp]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        ts = pd.to_datetime(value, utc=True, errors="coerce")
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning("Could not parse timestamp %r: %s", value, e)
        return None
    if not isinstance(ts, pd.Timestamp) or pd.isna(ts):
        logger.warning("Could not parse timestamp %r", value)
        return None
    return ts


def format_timestamp(value: Any) -> Optional[str]:
    """Render a timestamp as ISO-8601 UTC with milliseconds (``...T10:00:00.000Z``).

    Accepts datetimes and strings; naive values are taken as UTC. Returns
    None for null input and for anything that cannot be parsed.
    """
    ts = _to_utc(value)
    if ts is None:
        return None
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def format_plain_timestamp(value: Any) -> Optional[str]:
    """Render a timestamp as ``YYYY-MM-DD HH:MM:SS`` (UTC), or None."""
    ts = _to_utc(value)
    if ts is None:
        return None
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def format_day(value: Any) -> str:
    # MySQL returns DATE() as a date, SQLite as a "YYYY-MM-DD" string
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


def octets_to_gb(value: Any) -> float:
    """Convert an octet total to gigabytes rounded to 2 decimals (None -> 0)."""
    if value is None:
        return 0.0
    return round(float(value) / BYTES_PER_GB, 2)


def build_pagination(page: int, per_page: int, total_records: int) -> Dict[str, int]:
    """Pagination metadata for a listing of ``total_records`` rows."""
    return {
        "currentPage": page,
        "totalPages": math.ceil(total_records / per_page) if per_page else 0,
        "totalRecords": total_records,
        "recordsPerPage": per_page,
    }


def shape_record(record: RadAcct, timestamp_formatter=format_timestamp) -> Dict[str, Any]:
    """Convert an accounting row into its JSON representation."""
    data = {name: getattr(record, name) for name in _RECORD_COLUMNS}
    for name in _TIMESTAMP_COLUMNS:
        data[name] = timestamp_formatter(data[name])
    return data
