"""HTTP client for the Asaas payment gateway.

Only the read operations the billing screens need are exposed: customer
lookup by CPF/CNPJ or id, and the payments of one customer. Requests carry
the account's API key in the ``access_token`` header.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from radreport.config import Settings
from radreport.errors import ConfigurationError, GatewayResponseError, ServiceError

logger = logging.getLogger(__name__)


class PaymentGatewayClient:
    """Read-only client for the payment gateway's REST API.

    Args:
        base_url: API root, e.g. ``https://api.asaas.com/v3``.
        api_key: Account access token.
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
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "access_token": api_key,
                "Content-Type": "application/json",
            },
        )
        logger.info("Payment gateway configured at %s (key %s...)", self.base_url, api_key[:10])

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGatewayClient":
        """Build a client from settings.

        Raises:
            ConfigurationError: If the API key is not configured.
        """
        if not settings.ASAAS_API_KEY:
            raise ConfigurationError(
                "Payment gateway is not configured",
                "Missing environment variables: ASAAS_API_KEY",
            )
        return cls(
            settings.ASAAS_API_URL,
            settings.ASAAS_API_KEY,
            timeout=settings.ASAAS_TIMEOUT,
        )

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self.http_client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.error("Payment gateway request GET %s failed: %s", path, e)
            raise ServiceError("Payment gateway unreachable", str(e)) from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {"error": response.text}
            logger.error(
                "Payment gateway returned %d for GET %s: %s",
                response.status_code,
                path,
                body,
            )
            raise GatewayResponseError(response.status_code, body)

        return response.json()

    def test_connection(self) -> Any:
        """Fetch a single customer to check the key and the network path."""
        return self._get("/customers", params={"limit": 1})

    def find_customers(self, cpf_cnpj: str) -> Any:
        """Customers registered under a CPF or CNPJ."""
        return self._get("/customers", params={"cpfCnpj": cpf_cnpj})

    def get_customer(self, customer_id: str) -> Any:
        return self._get(f"/customers/{quote(customer_id, safe='')}")

    def list_payments(self, customer_id: str) -> Any:
        """Payments (charges) issued to one customer."""
        return self._get("/payments", params={"customer": customer_id})

    def close(self) -> None:
        self.http_client.close()
