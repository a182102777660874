"""Accounting report endpoints.

Provides endpoints for:
- Listing each user's latest session (paginated, filterable)
- Per-concentrator user counts and the registered concentrator inventory
- Per-user session history, debug listing and daily consumption
- Subscriber totals

Every failure is reported as HTTP 500 with ``{error, details}``.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from radreport.database import get_db
from radreport.errors import ReportQueryError
from radreport.schemas import (
    ConcentratorSummary,
    ConcentratorUserCount,
    ConnectionRecord,
    ConnectionsResponse,
    ConsumptionSample,
    ErrorResponse,
    UserRecordsResponse,
    UserStats,
)
from radreport.services.report_queries import ConnectionFilters, parse_page
from radreport.services.report_service import (
    get_concentrator_stats,
    get_concentrators,
    get_connections,
    get_user_consumption,
    get_user_history,
    get_user_records,
    get_user_stats,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Connections"],
    responses={500: {"model": ErrorResponse, "description": "Query failure"}},
)


def _report_failed(summary: str, error: Exception) -> ReportQueryError:
    logger.error("%s: %s", summary, error)
    return ReportQueryError(summary, str(error))


@router.get(
    "/connections",
    response_model=ConnectionsResponse,
    summary="List the latest session of each user",
    description=(
        "Returns one record per username: the session with the latest start "
        "time among the sessions matching `search` and `nasip`, optionally "
        "restricted by `status`. Results are ordered by username and paginated."
    ),
)
def list_connections(
    request: Request,
    page: Optional[str] = Query(None, description="Page number (1-indexed, default 1)"),
    search: Optional[str] = Query(None, description="Substring of the username"),
    status: Optional[str] = Query(None, description="all, up or down (default all)"),
    nasip: Optional[str] = Query(None, description="Concentrator address or all"),
    db: Session = Depends(get_db),
) -> Dict:
    """List the latest session per user with pagination and concentrator counts."""
    filters = ConnectionFilters.from_params(search=search, status=status, nasip=nasip)
    page_number = parse_page(page)
    try:
        return get_connections(
            db, filters, page_number, request.app.state.settings.PAGE_SIZE
        )
    except Exception as e:
        raise _report_failed("Failed to fetch connections", e)


@router.get(
    "/concentrator-stats",
    response_model=List[ConcentratorUserCount],
    summary="Users per concentrator",
    description=(
        "Counts, per concentrator address, the users whose most recent "
        "accounting record (highest session id) belongs to it."
    ),
)
def concentrator_stats(db: Session = Depends(get_db)) -> List[Dict]:
    try:
        return get_concentrator_stats(db)
    except Exception as e:
        raise _report_failed("Failed to fetch concentrator stats", e)


@router.get(
    "/concentrators",
    response_model=List[ConcentratorSummary],
    summary="Registered concentrators",
    description=(
        "Lists the concentrators registered in the nas table with the number "
        "of distinct users currently holding an open session on each."
    ),
)
def concentrators(request: Request, db: Session = Depends(get_db)) -> List[Dict]:
    try:
        return get_concentrators(db, request.app.state.settings.NAS_ADDRESS_ALIASES)
    except Exception as e:
        raise _report_failed("Failed to fetch concentrators", e)


@router.get(
    "/debug/user/{username}",
    response_model=UserRecordsResponse,
    summary="All accounting records of a user",
)
def debug_user(username: str, db: Session = Depends(get_db)) -> Dict:
    """Return every session of ``username``, newest first, for troubleshooting."""
    try:
        return get_user_records(db, username)
    except Exception as e:
        raise _report_failed("Failed to fetch user records", e)


@router.get(
    "/user-consumption/{username}",
    response_model=List[ConsumptionSample],
    summary="Daily consumption of a user",
    description=(
        "Upload and download volume in gigabytes per day over the trailing "
        "window (30 days by default), oldest day first."
    ),
)
def user_consumption(
    request: Request, username: str, db: Session = Depends(get_db)
) -> List[Dict]:
    logger.info("Fetching consumption data for user %s", username)
    try:
        return get_user_consumption(
            db,
            username,
            window_days=request.app.state.settings.CONSUMPTION_WINDOW_DAYS,
        )
    except Exception as e:
        raise _report_failed("Failed to fetch user consumption data", e)


@router.get(
    "/user-stats",
    response_model=UserStats,
    summary="Subscriber totals",
)
def user_stats(db: Session = Depends(get_db)) -> Dict:
    try:
        return get_user_stats(db)
    except Exception as e:
        raise _report_failed("Failed to fetch user stats", e)


@router.get(
    "/connections/user/{username}/history",
    response_model=List[ConnectionRecord],
    summary="Recent sessions of a user",
)
def user_history(
    request: Request, username: str, db: Session = Depends(get_db)
) -> List[Dict]:
    try:
        return get_user_history(db, username, request.app.state.settings.HISTORY_LIMIT)
    except Exception as e:
        raise _report_failed("Failed to fetch user connection history", e)
