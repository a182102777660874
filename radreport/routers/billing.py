"""Billing endpoints proxied to the payment gateway."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from radreport.errors import GatewayResponseError, MissingParameterError, ServiceError
from radreport.schemas import ErrorResponse

router = APIRouter(prefix="/api/asaas", tags=["Billing"])

_GATEWAY_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing query parameter"},
    500: {"model": ErrorResponse, "description": "Payment gateway unreachable"},
}


def _gateway(request: Request):
    return request.app.state.gateway


@router.get("/test", summary="Check the payment gateway connection")
def test_connection(request: Request):
    try:
        data = _gateway(request).test_connection()
    except GatewayResponseError as e:
        error: Any = e.body
    except ServiceError as e:
        error = e.details
    else:
        return {
            "success": True,
            "message": "Payment gateway connection established",
            "data": data,
        }
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Failed to connect to the payment gateway",
            "error": error,
        },
    )


@router.get("/customers", summary="Find customers by CPF/CNPJ", responses=_GATEWAY_RESPONSES)
def find_customers(
    request: Request,
    cpf_cnpj: Optional[str] = Query(None, alias="cpfCnpj"),
) -> Dict[str, Any]:
    """Gateway error statuses and bodies are passed through unchanged."""
    if not cpf_cnpj:
        raise MissingParameterError("Missing query parameter", "cpfCnpj is required")
    return _gateway(request).find_customers(cpf_cnpj)


@router.get(
    "/customers/{customer_id}",
    summary="Get a customer by id",
    responses={500: _GATEWAY_RESPONSES[500]},
)
def get_customer(request: Request, customer_id: str) -> Dict[str, Any]:
    return _gateway(request).get_customer(customer_id)


@router.get("/payments", summary="List a customer's payments", responses=_GATEWAY_RESPONSES)
def list_payments(
    request: Request,
    customer: Optional[str] = Query(None, description="Gateway customer id"),
) -> Dict[str, Any]:
    if not customer:
        raise MissingParameterError("Missing query parameter", "customer is required")
    return _gateway(request).list_payments(customer)
