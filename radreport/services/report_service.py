"""Accounting report service providing the logic behind the report endpoints.

Each function runs one or more statements from ``report_queries`` on the
request's session and shapes the rows into the response contract. The
statements of a single report run sequentially on the same connection but
without a shared snapshot.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from radreport.services import report_queries as queries
from radreport.services.formatting import (
    build_pagination,
    format_day,
    format_plain_timestamp,
    octets_to_gb,
    shape_record,
)
from radreport.services.report_queries import ConnectionFilters

logger = logging.getLogger(__name__)


def get_connections(
    db: Session,
    filters: ConnectionFilters,
    page: int,
    per_page: int,
) -> Dict:
    """Paginated latest session per user, with per-concentrator user counts.

    Args:
        db: Database session.
        filters: Normalized search/status/nasip filters.
        page: Page number (1-indexed). Pages past the end yield no rows.
        per_page: Number of records per page.

    Returns:
        Dictionary with ``data``, ``userCounts`` and ``pagination`` keys.
    """
    offset = (page - 1) * per_page
    logger.debug(
        "Fetching connections page=%d per_page=%d filters=%s", page, per_page, filters
    )

    total_records = db.execute(queries.connections_count(filters)).scalar() or 0

    records = db.execute(
        queries.connections_page(filters, per_page, offset)
    ).scalars().all()
    logger.debug("Fetched %d connection records", len(records))

    user_counts = [
        {"nasipaddress": row.nasipaddress, "user_count": int(row.user_count)}
        for row in db.execute(queries.concentrator_breakdown(filters))
    ]

    return {
        "data": [shape_record(record) for record in records],
        "userCounts": user_counts,
        "pagination": build_pagination(page, per_page, int(total_records)),
    }


def get_concentrator_stats(db: Session) -> List[Dict]:
    """Users per concentrator according to each user's last session id."""
    return [
        {"nasipaddress": row.nasipaddress, "user_count": int(row.user_count)}
        for row in db.execute(queries.concentrator_stats())
    ]


def get_concentrators(db: Session, aliases: Optional[Dict[str, str]] = None) -> List[Dict]:
    """Registered concentrators with the number of users currently connected."""
    return [
        {
            "nasname": row.nasname,
            "shortname": row.shortname,
            "type": row.type,
            "ports": row.ports,
            "description": row.description,
            "user_count": int(row.user_count),
        }
        for row in db.execute(queries.concentrator_inventory(aliases))
    ]


def get_user_records(db: Session, username: str) -> Dict:
    """Every accounting record of a user, for troubleshooting."""
    records = db.execute(queries.user_records(username)).scalars().all()
    return {
        "username": username,
        "totalRecords": len(records),
        "records": [shape_record(r, format_plain_timestamp) for r in records],
    }


def get_user_history(db: Session, username: str, limit: int = 10) -> List[Dict]:
    """The most recent sessions of a user, newest first."""
    records = db.execute(queries.user_history(username, limit)).scalars().all()
    return [shape_record(record) for record in records]


def get_user_consumption(
    db: Session,
    username: str,
    now: Optional[datetime] = None,
    window_days: int = 30,
) -> List[Dict]:
    """Daily upload/download volume of a user over the trailing window.

    Octets are summed per day in the database and only then converted to
    gigabytes, so per-session rounding never accumulates.

    Args:
        db: Database session.
        username: Exact username.
        now: End of the window (defaults to the current UTC time).
        window_days: Length of the window in days.

    Returns:
        One ``{date, upload_gb, download_gb}`` entry per day with traffic,
        in ascending date order.
    """
    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
    since = now - timedelta(days=window_days)

    samples = [
        {
            "date": format_day(row.day),
            "upload_gb": octets_to_gb(row.input_octets),
            "download_gb": octets_to_gb(row.output_octets),
        }
        for row in db.execute(queries.user_consumption(username, since))
    ]
    if samples:
        logger.debug(
            "Consumption of %s: %d days, peak upload %.2f GB, peak download %.2f GB",
            username,
            len(samples),
            max(s["upload_gb"] for s in samples),
            max(s["download_gb"] for s in samples),
        )
    return samples


def get_user_stats(db: Session) -> Dict[str, int]:
    """Total distinct subscribers and how many hold an open session."""
    row = db.execute(queries.user_stats()).one()
    return {
        "total_users": int(row.total_users or 0),
        "active_connections": int(row.active_connections or 0),
    }
