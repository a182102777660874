"""Calendar event mirror over the managed backend's ``agenda`` table.

Events are validated and normalized here before being written, and dates
read back are rendered in the same ISO-8601 form as the accounting reports.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from radreport.errors import AgendaValidationError, EventNotFoundError
from radreport.services.backend import BackendClient
from radreport.services.formatting import format_timestamp

logger = logging.getLogger(__name__)

AGENDA_TABLE = "agenda"

BOOLEAN_FIELDS = (
    "horamarcada",
    "prioritario",
    "privado",
    "realizada",
    "parcial",
    "cancelado",
)
DEFAULT_EVENT_TYPE = "Padrão"
DEFAULT_RESPONSIBLE = "Sistema"


def _utc_timestamp(now: Optional[datetime]) -> pd.Timestamp:
    ts = pd.Timestamp(now if now is not None else datetime.now(timezone.utc))
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts


def normalize_event(
    payload: Dict[str, Any],
    creating: bool,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Validate an event payload and fill in the normalized fields.

    Fields not handled here are passed through unchanged.

    Args:
        payload: Event fields as sent by the client.
        creating: Whether the event is being created; new events get a
            ``creation_date`` when none is supplied.
        now: Reference time for ``creation_date`` (defaults to now).

    Returns:
        A new dictionary ready to be written to the backend.

    Raises:
        AgendaValidationError: If the name is blank or a date is invalid.
    """
    name = payload.get("nome")
    if not isinstance(name, str) or not name.strip():
        raise AgendaValidationError("Missing required fields", "Event name is required")

    datainicio = format_timestamp(payload.get("datainicio"))
    datafinal = format_timestamp(payload.get("datafinal"))
    if not datainicio or not datafinal:
        raise AgendaValidationError("Invalid dates", "Start and/or end date are invalid")

    event = dict(payload)
    event["datainicio"] = datainicio
    event["datafinal"] = datafinal
    event["data_finalizacao"] = format_timestamp(payload.get("data_finalizacao"))
    if creating:
        event["creation_date"] = format_timestamp(
            payload.get("creation_date")
        ) or format_timestamp(_utc_timestamp(now))
    for field in BOOLEAN_FIELDS:
        event[field] = bool(payload.get(field))
    event["tipo_evento"] = payload.get("tipo_evento") or DEFAULT_EVENT_TYPE
    event["usuario_resp"] = payload.get("usuario_resp") or DEFAULT_RESPONSIBLE
    return event


def list_recent_events(
    backend: BackendClient,
    now: Optional[datetime] = None,
    lookback_months: int = 3,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    """Fetch the latest events, dropping invalid and old ones.

    Fetches up to ``limit`` events by descending start date. Events whose
    start or end date cannot be parsed are skipped; of the rest, only those
    starting or ending within the last ``lookback_months`` months (or later)
    are kept.
    """
    rows = backend.select(AGENDA_TABLE, order="datainicio.desc", limit=limit)
    cutoff = _utc_timestamp(now) - pd.DateOffset(months=lookback_months)

    events = []
    for row in rows:
        datainicio = format_timestamp(row.get("datainicio"))
        datafinal = format_timestamp(row.get("datafinal"))
        if not datainicio or not datafinal:
            logger.warning("Skipping agenda event %s with invalid dates", row.get("id"))
            continue
        if pd.Timestamp(datainicio) < cutoff and pd.Timestamp(datafinal) < cutoff:
            continue
        events.append(
            {
                **row,
                "datainicio": datainicio,
                "datafinal": datafinal,
                "data_finalizacao": format_timestamp(row.get("data_finalizacao")),
                "creation_date": format_timestamp(row.get("creation_date")),
            }
        )

    logger.info("Found %d agenda events", len(events))
    return events


def create_event(
    backend: BackendClient,
    payload: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Validate, normalize and store a new event."""
    event = normalize_event(payload, creating=True, now=now)
    created = backend.insert(AGENDA_TABLE, event)
    logger.info("Created agenda event %s", created.get("id"))
    return created


def update_event(
    backend: BackendClient,
    event_id: str,
    payload: Dict[str, Any],
) -> Dict[str, Any]:
    """Validate, normalize and store changes to an existing event.

    Raises:
        EventNotFoundError: If no event has the given id.
    """
    event = normalize_event(payload, creating=False)
    updated = backend.update(AGENDA_TABLE, event_id, event)
    if updated is None:
        raise EventNotFoundError(
            "Event not found", f"No agenda event with id {event_id}"
        )
    logger.info("Updated agenda event %s", event_id)
    return updated


def delete_event(backend: BackendClient, event_id: str) -> Dict[str, str]:
    """Delete an event after checking that it exists.

    Raises:
        EventNotFoundError: If no event has the given id.
    """
    if backend.get(AGENDA_TABLE, event_id) is None:
        raise EventNotFoundError(
            "Event not found",
            "The requested event does not exist or was already deleted",
        )
    backend.delete(AGENDA_TABLE, event_id)
    logger.info("Deleted agenda event %s", event_id)
    return {"message": "Event deleted successfully"}
