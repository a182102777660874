"""Calendar event endpoints mirrored against the managed backend."""

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Request

from radreport.errors import BackendError, ServiceError
from radreport.schemas import ErrorResponse
from radreport.services.agenda import (
    create_event,
    delete_event,
    list_recent_events,
    update_event,
)

router = APIRouter(prefix="/api/agenda", tags=["Agenda"])

_VALIDATION_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing name or invalid dates"},
    500: {"model": ErrorResponse, "description": "Managed backend failure"},
}


def _backend(request: Request):
    return request.app.state.backend


@router.get("", summary="List recent agenda events", responses=_VALIDATION_RESPONSES)
def list_events(request: Request) -> List[Dict[str, Any]]:
    """Events starting or ending within the configured lookback, newest first."""
    settings = request.app.state.settings
    try:
        return list_recent_events(
            _backend(request),
            lookback_months=settings.AGENDA_LOOKBACK_MONTHS,
            limit=settings.AGENDA_FETCH_LIMIT,
        )
    except BackendError as e:
        raise ServiceError("Failed to fetch events", e.details)


@router.post("", summary="Create an agenda event", responses=_VALIDATION_RESPONSES)
def create(request: Request, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    try:
        return create_event(_backend(request), payload)
    except BackendError as e:
        raise ServiceError("Failed to create event", e.details)


@router.put(
    "/{event_id}",
    summary="Update an agenda event",
    responses={**_VALIDATION_RESPONSES, 404: {"model": ErrorResponse}},
)
def update(
    request: Request, event_id: str, payload: Dict[str, Any] = Body(...)
) -> Dict[str, Any]:
    try:
        return update_event(_backend(request), event_id, payload)
    except BackendError as e:
        raise ServiceError("Failed to update event", e.details)


@router.delete(
    "/{event_id}",
    summary="Delete an agenda event",
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def delete(request: Request, event_id: str) -> Dict[str, str]:
    try:
        return delete_event(_backend(request), event_id)
    except BackendError as e:
        raise ServiceError("Failed to delete event", e.details)
