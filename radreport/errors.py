"""Service exceptions and their translation to JSON error responses.

Every failure the service reports to a client carries a short ``error``
summary and a ``details`` message, rendered as ``{"error", "details"}``
with the exception's status code.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for failures surfaced to API clients."""

    status_code = 500

    def __init__(self, error: str, details: str = "", status_code: Optional[int] = None):
        super().__init__(f"{error}: {details}" if details else error)
        self.error = error
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class ReportQueryError(ServiceError):
    """A report query failed while executing or shaping its rows."""


class PoolExhaustedError(ServiceError):
    """No pooled connection became free before the wait timeout."""


class DatabaseUnavailableError(ServiceError):
    """The accounting database could not be reached."""


class ConfigurationError(ServiceError):
    """Required configuration is missing or invalid."""


class BackendError(ServiceError):
    """The managed backend rejected a request or could not be reached."""


class AgendaValidationError(ServiceError):
    """An agenda event payload is missing required fields or has bad dates."""

    status_code = 400


class EventNotFoundError(ServiceError):
    """The requested agenda event does not exist."""

    status_code = 404


class MissingParameterError(ServiceError):
    """A required query parameter was not supplied."""

    status_code = 400


class GatewayResponseError(ServiceError):
    """The payment gateway answered with an error status.

    The gateway's status code and body are relayed to the client unchanged.
    """

    def __init__(self, status_code: int, body: Any):
        super().__init__("Payment gateway request failed", str(body), status_code)
        self.body = body


def install_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that render service errors as JSON."""

    @app.exception_handler(ServiceError)
    async def _handle_service_error(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "details": exc.details},
        )

    @app.exception_handler(GatewayResponseError)
    async def _handle_gateway_error(request: Request, exc: GatewayResponseError):
        logger.warning(
            "%s %s relayed gateway status %d", request.method, request.url.path, exc.status_code
        )
        return JSONResponse(status_code=exc.status_code, content=exc.body)
