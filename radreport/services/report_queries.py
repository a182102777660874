"""Statement builders for the accounting reports.

Every report is composed from SQLAlchemy expression objects: each filter is
a predicate carrying its own bound parameter, so placeholders and parameter
values can never drift apart. Nothing here touches a connection; the
functions only return executable ``Select`` statements.

The connections listing, its total count and its per-concentrator
breakdown are all derived from ``_filtered_latest`` so that they share the
exact same predicates.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, distinct, func, select
from sqlalchemy.sql import Select

from radreport.models import Nas, RadAcct

STATUS_ALL = "all"
STATUS_UP = "up"
STATUS_DOWN = "down"
_STATUSES = {STATUS_ALL, STATUS_UP, STATUS_DOWN}

NAS_ALL = "all"


def parse_page(value: Any) -> int:
    """Parse a page number, falling back to 1 for anything unusable."""
    try:
        page = int(str(value).strip())
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


@dataclass(frozen=True)
class ConnectionFilters:
    """Normalized filters of the connections report.

    Attributes:
        search: Substring matched against the username ("" disables it).
        status: One of ``all``, ``up`` or ``down``.
        nasip: Exact concentrator address, or ``all``.
    """

    search: str = ""
    status: str = STATUS_ALL
    nasip: str = NAS_ALL

    @classmethod
    def from_params(
        cls,
        search: Optional[str] = None,
        status: Optional[str] = None,
        nasip: Optional[str] = None,
    ) -> "ConnectionFilters":
        """Build filters from raw query parameters.

        Unrecognized status values and an empty nasip are treated as ``all``.
        """
        status = (status or STATUS_ALL).strip().lower()
        if status not in _STATUSES:
            status = STATUS_ALL
        nasip = (nasip or "").strip() or NAS_ALL
        return cls(search=(search or "").strip(), status=status, nasip=nasip)

    def session_predicates(self) -> List:
        """Predicates selecting the sessions that compete for "latest"."""
        predicates = []
        if self.search:
            predicates.append(RadAcct.username.contains(self.search, autoescape=True))
        if self.nasip != NAS_ALL:
            predicates.append(RadAcct.nasipaddress == self.nasip)
        return predicates

    def status_predicate(self):
        """Predicate applied to each user's latest session, if any."""
        if self.status == STATUS_UP:
            return RadAcct.acctstoptime.is_(None)
        if self.status == STATUS_DOWN:
            return RadAcct.acctstoptime.is_not(None)
        return None


def latest_sessions(filters: ConnectionFilters):
    """CTE with the radacctid of each user's most recent session.

    The most recent session is the one with the greatest start time among
    the sessions matching the search/nasip filters. Sessions sharing that
    start time are tie-broken by the highest radacctid, so each username
    yields exactly one row.
    """
    predicates = filters.session_predicates()
    latest_start = (
        select(
            RadAcct.username,
            func.max(RadAcct.acctstarttime).label("latest_start"),
        )
        .where(*predicates)
        .group_by(RadAcct.username)
        .cte("latest_start_times")
    )
    return (
        select(func.max(RadAcct.radacctid).label("radacctid"))
        .select_from(RadAcct)
        .join(
            latest_start,
            and_(
                RadAcct.username == latest_start.c.username,
                RadAcct.acctstarttime == latest_start.c.latest_start,
            ),
        )
        .where(*predicates)
        .group_by(RadAcct.username)
        .cte("latest_sessions")
    )


def _filtered_latest(filters: ConnectionFilters, *columns) -> Select:
    latest = latest_sessions(filters)
    stmt = (
        select(*columns)
        .select_from(RadAcct)
        .join(latest, RadAcct.radacctid == latest.c.radacctid)
    )
    status = filters.status_predicate()
    if status is not None:
        stmt = stmt.where(status)
    return stmt


def connections_page(filters: ConnectionFilters, limit: int, offset: int) -> Select:
    """Latest session per user, ordered by username, one page of it."""
    return (
        _filtered_latest(filters, RadAcct)
        .order_by(RadAcct.username.asc(), RadAcct.radacctid.asc())
        .limit(limit)
        .offset(offset)
    )


def connections_count(filters: ConnectionFilters) -> Select:
    """Number of rows the unpaginated listing would return."""
    return _filtered_latest(filters, func.count().label("total"))


def concentrator_breakdown(filters: ConnectionFilters) -> Select:
    """Distinct users of the filtered listing grouped by concentrator."""
    return (
        _filtered_latest(
            filters,
            RadAcct.nasipaddress,
            func.count(distinct(RadAcct.username)).label("user_count"),
        )
        .group_by(RadAcct.nasipaddress)
        .order_by(RadAcct.nasipaddress)
    )


def concentrator_stats() -> Select:
    """Users per concentrator, by each user's highest radacctid."""
    last_sessions = (
        select(func.max(RadAcct.radacctid).label("last_id"))
        .group_by(RadAcct.username)
        .subquery("last_sessions")
    )
    return (
        select(
            RadAcct.nasipaddress,
            func.count(RadAcct.username).label("user_count"),
        )
        .select_from(RadAcct)
        .join(last_sessions, RadAcct.radacctid == last_sessions.c.last_id)
        .group_by(RadAcct.nasipaddress)
        .order_by(RadAcct.nasipaddress)
    )


def concentrator_inventory(aliases: Optional[Dict[str, str]] = None) -> Select:
    """Registered concentrators with their distinct connected users.

    Args:
        aliases: Maps a ``nas.nasname`` to the address its accounting
            records are reported under, for devices whose accounting source
            address differs from their registered name.
    """
    if aliases:
        accounting_address = case(aliases, value=Nas.nasname, else_=Nas.nasname)
    else:
        accounting_address = Nas.nasname

    group_columns = (Nas.nasname, Nas.shortname, Nas.type, Nas.ports, Nas.description)
    return (
        select(
            *group_columns,
            func.count(distinct(RadAcct.username)).label("user_count"),
        )
        .select_from(Nas)
        .outerjoin(
            RadAcct,
            and_(
                RadAcct.nasipaddress == accounting_address,
                RadAcct.acctstoptime.is_(None),
            ),
        )
        .group_by(*group_columns)
        .order_by(Nas.nasname)
    )


def user_records(username: str) -> Select:
    """Every session of one user, most recent first."""
    return (
        select(RadAcct)
        .where(RadAcct.username == username)
        .order_by(RadAcct.acctstarttime.desc(), RadAcct.radacctid.desc())
    )


def user_history(username: str, limit: int) -> Select:
    """The ``limit`` most recent sessions of one user."""
    return user_records(username).limit(limit)


def user_consumption(username: str, since: datetime) -> Select:
    """Per-day octet totals of one user for sessions started at or after ``since``."""
    day = func.date(RadAcct.acctstarttime)
    return (
        select(
            day.label("day"),
            func.coalesce(func.sum(RadAcct.acctinputoctets), 0).label("input_octets"),
            func.coalesce(func.sum(RadAcct.acctoutputoctets), 0).label("output_octets"),
        )
        .where(
            RadAcct.username == username,
            RadAcct.acctstarttime >= since,
        )
        .group_by(day)
        .order_by(day)
    )


def user_stats() -> Select:
    """Distinct usernames overall and with an open session."""
    total_users = select(func.count(distinct(RadAcct.username))).scalar_subquery()
    active_connections = (
        select(func.count(distinct(RadAcct.username)))
        .where(RadAcct.acctstoptime.is_(None))
        .scalar_subquery()
    )
    return select(
        total_users.label("total_users"),
        active_connections.label("active_connections"),
    )
