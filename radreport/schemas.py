"""Pydantic schemas for API response serialization.

Field names follow the JSON contract consumed by the frontend, which mixes
the raw ``radacct`` column names with a few camelCase envelope fields.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ConnectionRecord(BaseModel):
    """A single accounting session as returned by the report endpoints."""

    radacctid: int = Field(..., description="Accounting session id")
    username: str = Field(..., description="Subscriber login")
    nasipaddress: str = Field(..., description="Concentrator address")
    nasportid: Optional[str] = Field(None, description="Concentrator port id")
    acctstarttime: Optional[str] = Field(None, description="Session start")
    acctstoptime: Optional[str] = Field(
        None, description="Session stop, null while the session is up"
    )
    acctinputoctets: Optional[int] = Field(None, description="Uploaded octets")
    acctoutputoctets: Optional[int] = Field(None, description="Downloaded octets")
    acctterminatecause: Optional[str] = Field(None, description="Terminate cause")
    framedipaddress: Optional[str] = Field(None, description="Assigned address")
    callingstationid: Optional[str] = Field(None, description="Device MAC address")


class ConcentratorUserCount(BaseModel):
    """Number of distinct users attributed to one concentrator."""

    nasipaddress: str = Field(..., description="Concentrator address")
    user_count: int = Field(..., description="Distinct usernames")


class Pagination(BaseModel):
    """Pagination metadata of a connections listing."""

    currentPage: int = Field(..., description="Requested page (1-indexed)")
    totalPages: int = Field(..., description="ceil(totalRecords / recordsPerPage)")
    totalRecords: int = Field(..., description="Records matching the filters")
    recordsPerPage: int = Field(..., description="Page size")


class ConnectionsResponse(BaseModel):
    """Paginated latest-session-per-user listing."""

    data: List[ConnectionRecord]
    userCounts: List[ConcentratorUserCount]
    pagination: Pagination


class ConcentratorSummary(BaseModel):
    """A registered concentrator with its number of connected users."""

    nasname: str
    shortname: Optional[str] = None
    type: Optional[str] = None
    ports: Optional[int] = None
    description: Optional[str] = None
    user_count: int = Field(..., description="Distinct users with an open session")


class UserRecordsResponse(BaseModel):
    """Every accounting record of one user (debug listing)."""

    username: str
    totalRecords: int
    records: List[ConnectionRecord]


class ConsumptionSample(BaseModel):
    """Traffic of one user on one calendar day."""

    date: str = Field(..., description="Calendar day (YYYY-MM-DD)")
    upload_gb: float = Field(..., description="Uploaded gigabytes")
    download_gb: float = Field(..., description="Downloaded gigabytes")


class UserStats(BaseModel):
    """Subscriber totals across the whole accounting table."""

    total_users: int = Field(..., description="Distinct usernames")
    active_connections: int = Field(
        ..., description="Distinct usernames with an open session"
    )


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error summary")
    details: str = Field(..., description="Error message")
