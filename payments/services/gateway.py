# payments/services/gateway.py

"""
Toss Payments gateway adapter.

A stateless translator: it sends confirm / cancel requests to the provider and
turns the responses into ``GatewayConfirmation`` / ``GatewayCancellation`` or a
typed ``GatewayRejected``. It never touches the database.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from django.utils.dateparse import parse_datetime
from django.utils.module_loading import import_string

from payments.exceptions import GatewayRejected, GatewayTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayConfirmation:
    payment_key: str
    order_id: str
    transaction_key: str
    approved_at: datetime
    method: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayCancellation:
    payment_key: str
    cancel_amount: Optional[int]
    cancelled_at: Optional[datetime]
    transaction_key: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)


class TossPaymentsGateway:
    provider_name = "TOSS_PAYMENTS"

    def __init__(self, secret_key: str | None = None, base_url: str | None = None,
                 timeout: float | None = None):
        self.secret_key = secret_key if secret_key is not None else getattr(settings, "TOSS_PAYMENTS_SECRET_KEY", "")
        self.base_url = (base_url or getattr(settings, "TOSS_PAYMENTS_API_URL", "https://api.tosspayments.com/v1")).rstrip("/")
        self.timeout = timeout if timeout is not None else getattr(settings, "PAYMENT_GATEWAY_TIMEOUT", 10)

    def _auth_headers(self) -> Dict[str, str]:
        # Basic auth with the secret key as username and an empty password
        encoded = base64.b64encode(f"{self.secret_key}:".encode("utf-8")).decode("ascii")
        return {
            "Authorization": f"Basic {encoded}",
            "Content-Type": "application/json",
        }

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = requests.post(url, headers=self._auth_headers(), json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Toss Payments timeout: POST {path}")
            raise GatewayTimeout(f"Payment gateway did not answer within {self.timeout}s.")
        except requests.exceptions.RequestException as e:
            logger.error(f"Toss Payments connection error: POST {path}: {e}")
            raise GatewayRejected(f"Payment gateway unreachable: {e}")

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}

        if not 200 <= response.status_code < 300:
            message = data.get("message") or f"Payment gateway returned HTTP {response.status_code}"
            logger.warning(
                f"Toss Payments rejected POST {path}: status={response.status_code} "
                f"code={data.get('code')} message={message}"
            )
            raise GatewayRejected(message, provider_code=data.get("code"), status_code=response.status_code)

        return data

    def request_confirmation(self, payment_key: str, order_id: str, amount: int) -> GatewayConfirmation:
        data = self._post(
            "/payments/confirm",
            {"paymentKey": payment_key, "orderId": order_id, "amount": amount},
        )

        approved_at = parse_datetime(data.get("approvedAt") or "")
        transaction_key = data.get("transactionKey") or data.get("lastTransactionKey")
        if approved_at is None or not transaction_key:
            logger.error(f"Toss Payments confirmation for {order_id} is missing approvedAt/transactionKey")
            raise GatewayRejected("Payment gateway confirmation is missing approval data.")

        logger.info(f"Toss Payments confirmed order={order_id} key={payment_key}")
        return GatewayConfirmation(
            payment_key=data.get("paymentKey") or payment_key,
            order_id=data.get("orderId") or order_id,
            transaction_key=transaction_key,
            approved_at=approved_at,
            method=data.get("method") or "",
            raw=data,
        )

    def request_cancellation(self, payment_key: str, cancel_reason: str,
                             cancel_amount: int | None = None) -> GatewayCancellation:
        payload: Dict[str, Any] = {"cancelReason": cancel_reason}
        # Omitting cancelAmount cancels the full remaining amount
        if cancel_amount is not None:
            payload["cancelAmount"] = cancel_amount

        data = self._post(f"/payments/{payment_key}/cancel", payload)

        cancels = data.get("cancels") or []
        last_cancel = cancels[-1] if cancels else {}
        logger.info(f"Toss Payments cancelled key={payment_key} amount={cancel_amount}")
        return GatewayCancellation(
            payment_key=payment_key,
            cancel_amount=last_cancel.get("cancelAmount", cancel_amount),
            cancelled_at=parse_datetime(last_cancel.get("canceledAt") or ""),
            transaction_key=last_cancel.get("transactionKey") or "",
            raw=data,
        )


def get_gateway():
    """Build the adapter configured by PAYMENT_GATEWAY_BACKEND."""
    backend = getattr(settings, "PAYMENT_GATEWAY_BACKEND", "payments.services.gateway.TossPaymentsGateway")
    return import_string(backend)()
