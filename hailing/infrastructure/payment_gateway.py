"""
Payment-gateway client.

Only the two calls the refund workflow needs are modelled: issuing a
refund against a captured payment and polling a refund's state.  The
HTTP implementation talks to a Razorpay-style REST API (amounts in the
smallest currency unit, basic auth with key id / secret).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from hailing.config import settings

logger = logging.getLogger(__name__)

REFUND_PROCESSED = "processed"


class PaymentGatewayError(Exception):
    """The gateway could not be reached or rejected the request."""


class PaymentGateway(ABC):
    @abstractmethod
    async def capture_status(self, payment_reference: str) -> str:
        ...

    @abstractmethod
    async def refund(
        self, payment_reference: str, amount: int, *, receipt: str
    ) -> str:
        """Issue a refund; returns the gateway's refund reference.

        *receipt* is the idempotency key (the booking number).
        """

    @abstractmethod
    async def refund_status(self, refund_reference: str) -> str:
        ...


class HttpPaymentGateway(PaymentGateway):
    def __init__(
        self,
        base_url: str = settings.payment_gateway_url,
        key_id: str = settings.payment_gateway_key_id,
        key_secret: str = settings.payment_gateway_key_secret,
        timeout: float = settings.payment_gateway_timeout_seconds,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    async def capture_status(self, payment_reference: str) -> str:
        data = await self._request("GET", f"/payments/{payment_reference}")
        return data.get("status", "")

    async def refund(
        self, payment_reference: str, amount: int, *, receipt: str
    ) -> str:
        data = await self._request(
            "POST",
            f"/payments/{payment_reference}/refund",
            json={"amount": amount * 100, "receipt": receipt},
        )
        if not data.get("id"):
            raise PaymentGatewayError(f"Refund for {receipt} returned no id")
        return data["id"]

    async def refund_status(self, refund_reference: str) -> str:
        data = await self._request("GET", f"/refunds/{refund_reference}")
        return data.get("status", "")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"{method} {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise PaymentGatewayError(
                f"{method} {url} returned {response.status_code}: {response.text}"
            )
        return response.json() or {}
