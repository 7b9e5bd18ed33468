"""Minimal Razorpay REST client for session payments."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional, cast

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)


class RazorpayError(RuntimeError):
    """Raised when Razorpay responds with an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        error_code: str | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.timed_out = timed_out


def sign(message: str | bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``message`` keyed with ``secret``."""
    payload = message.encode("utf-8") if isinstance(message, str) else message
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Checkout signature is HMAC-SHA256 over ``"<order_id>|<payment_id>"``."""
    if not secret or not signature:
        return False
    expected = sign(f"{order_id}|{payment_id}", secret)
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(body: bytes, signature: str, secret: str) -> bool:
    """Webhook signature is HMAC-SHA256 over the raw request body."""
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign(body, secret), signature)


class RazorpayClient:
    """Thin client for the Razorpay orders, payments and refunds API."""

    def __init__(
        self,
        *,
        key_id: str,
        key_secret: str | SecretStr,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = (
            key_secret.get_secret_value() if isinstance(key_secret, SecretStr) else key_secret
        )
        if not key_id or not secret_value:
            raise ValueError("Razorpay not configured. Please add API keys.")

        self._key_id = key_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        # Razorpay uses HTTP Basic auth with the key id and key secret.
        self._auth = httpx.BasicAuth(key_id, secret_value)

    @property
    def key_id(self) -> str:
        return self._key_id

    def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        """Create an order; ``amount`` is in the smallest currency unit."""
        body: Dict[str, Any] = {"amount": amount, "currency": currency, "receipt": receipt}
        if notes:
            body["notes"] = notes
        return self.request("POST", "/orders", json_body=body)

    def capture_payment(self, payment_id: str, *, amount: int, currency: str) -> Dict[str, Any]:
        if not payment_id:
            raise ValueError("payment_id must be provided")
        return self.request(
            "POST",
            f"/payments/{payment_id}/capture",
            json_body={"amount": amount, "currency": currency},
        )

    def refund_payment(
        self, payment_id: str, *, amount: int, notes: Dict[str, str] | None = None
    ) -> Dict[str, Any]:
        if not payment_id:
            raise ValueError("payment_id must be provided")
        body: Dict[str, Any] = {"amount": amount}
        if notes:
            body["notes"] = notes
        return self.request("POST", f"/payments/{payment_id}/refund", json_body=body)

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw Razorpay API request and return the parsed JSON payload."""

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            auth=self._auth,
            headers={"Accept": "application/json"},
        ) as client:
            try:
                response = client.request(method, url, json=json_body)
                response.raise_for_status()
            except httpx.TimeoutException as exc:
                logger.error("Razorpay request timed out for %s %s", method, path)
                raise RazorpayError(
                    "Payment gateway timed out", error_code="GATEWAY_TIMEOUT", timed_out=True
                ) from exc
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                error_code: str | None = None
                message = f"Razorpay API responded with status {status}"
                try:
                    error_payload = exc.response.json()
                    if isinstance(error_payload, dict) and isinstance(
                        error_payload.get("error"), dict
                    ):
                        error_code = error_payload["error"].get("code")
                        message = error_payload["error"].get("description") or message
                except json.JSONDecodeError:
                    pass

                logger.error(
                    "Razorpay API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise RazorpayError(message, status_code=status, error_code=error_code) from exc
            except httpx.RequestError as exc:
                logger.error("Razorpay request failure for %s %s: %s", method, path, str(exc))
                raise RazorpayError("Failed to reach payment gateway") from exc

        try:
            return cast(Dict[str, Any], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from Razorpay for %s %s: %s", method, path, response.text)
            raise RazorpayError("Received malformed JSON from payment gateway") from exc
