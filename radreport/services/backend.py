"""HTTP client for the managed backend's REST interface.

The managed backend exposes each table under ``{BACKEND_URL}/rest/v1/{table}``
(PostgREST conventions): filters are query parameters such as
``id=eq.42``, ordering is ``order=column.desc`` and writes return the
affected rows when asked with ``Prefer: return=representation``.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from radreport.config import Settings
from radreport.errors import BackendError, ConfigurationError

logger = logging.getLogger(__name__)


class BackendClient:
    """Minimal table client for the managed backend.

    Args:
        base_url: Project URL of the managed backend.
        api_key: Anonymous API key, sent both as ``apikey`` and as bearer token.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.http_client = httpx.Client(
            base_url=f"{self.base_url}/rest/v1",
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackendClient":
        """Build a client from settings.

        Raises:
            ConfigurationError: If the backend URL or key is not configured.
        """
        missing = [
            name
            for name in ("BACKEND_URL", "BACKEND_ANON_KEY")
            if not getattr(settings, name)
        ]
        if missing:
            raise ConfigurationError(
                "Managed backend is not configured",
                f"Missing environment variables: {', '.join(missing)}",
            )
        return cls(
            settings.BACKEND_URL,
            settings.BACKEND_ANON_KEY,
            timeout=settings.BACKEND_TIMEOUT,
        )

    def _request(self, method: str, table: str, **kwargs) -> Any:
        try:
            response = self.http_client.request(method, f"/{table}", **kwargs)
        except httpx.HTTPError as e:
            logger.error("Managed backend request %s %s failed: %s", method, table, e)
            raise BackendError("Managed backend unreachable", str(e)) from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = (body.get("message") if isinstance(body, dict) else None) or response.text
            logger.error(
                "Managed backend returned %d for %s %s: %s",
                response.status_code,
                method,
                table,
                message,
            )
            raise BackendError("Managed backend request failed", message)

        if not response.content:
            return None
        return response.json()

    def select(
        self,
        table: str,
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch rows of ``table``.

        Args:
            table: Table name.
            filters: PostgREST filters, e.g. ``{"id": "eq.42"}``.
            order: Ordering, e.g. ``"datainicio.desc"``.
            limit: Maximum number of rows.
        """
        params = {"select": "*"}
        if filters:
            params.update(filters)
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", table, params=params) or []

    def get(self, table: str, row_id: Any) -> Optional[Dict[str, Any]]:
        """Fetch a single row by id, or None if it does not exist."""
        rows = self.select(table, filters={"id": f"eq.{row_id}"}, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored."""
        rows = self._request(
            "POST",
            table,
            json=[values],
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise BackendError("Managed backend request failed", "Insert returned no rows")
        return rows[0]

    def update(self, table: str, row_id: Any, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update one row by id; returns the updated row, or None if no row matched."""
        rows = self._request(
            "PATCH",
            table,
            params={"id": f"eq.{row_id}"},
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return rows[0] if rows else None

    def delete(self, table: str, row_id: Any) -> None:
        """Delete one row by id."""
        self._request("DELETE", table, params={"id": f"eq.{row_id}"})

    def close(self) -> None:
        self.http_client.close()
