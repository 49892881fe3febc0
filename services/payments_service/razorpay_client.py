"""
Razorpay API client for orders and RazorpayX payouts.

Provides async methods for:
- Creating checkout orders
- Initiating payouts to an educator's fund account
"""

from dataclasses import dataclass, field
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass
class GatewayOrder:
    """Checkout order created on Razorpay."""

    id: str
    amount: int  # in paise
    currency: str
    receipt: Optional[str]
    status: str


@dataclass
class GatewayPayout:
    """Result of initiating a RazorpayX payout."""

    id: str
    reference_id: Optional[str]
    status: str  # queued, pending, processing, processed, reversed, ...
    amount: int  # in paise
    currency: str
    raw: dict = field(default_factory=dict)


class RazorpayError(Exception):
    """Base exception for Razorpay API errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class RazorpayClient:
    """Async client for the Razorpay Orders and RazorpayX Payouts APIs.

    Built once at application start and shared through FastAPI dependencies.
    """

    def __init__(
        self,
        key_id: str = None,
        key_secret: str = None,
        base_url: str = None,
        account_number: str = None,
        timeout: float = 30.0,
    ):
        settings = get_settings()
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        self.base_url = (base_url or settings.RAZORPAY_API_BASE_URL).rstrip("/")
        self.account_number = account_number or settings.RAZORPAYX_ACCOUNT_NUMBER
        self.timeout = timeout

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_data: dict = None,
        headers: dict = None,
    ) -> dict:
        """Make an authenticated request to the Razorpay API."""
        if not self.key_id or not self.key_secret:
            raise RazorpayError("Razorpay credentials are not configured")

        url = f"{self.base_url}{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    auth=(self.key_id, self.key_secret),
                    json=json_data,
                    headers=headers,
                )
        except httpx.RequestError as e:
            logger.error(f"Razorpay request failed: {e}")
            raise RazorpayError(f"Unable to reach Razorpay: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            logger.error(f"Razorpay API error: {response.status_code} - {data}")
            error = data.get("error") or {}
            raise RazorpayError(
                message=error.get("description") or "Unknown Razorpay error",
                status_code=response.status_code,
                response_data=data,
            )
        return data

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[dict] = None,
    ) -> GatewayOrder:
        """
        Create a checkout order.

        Args:
            amount: Amount in paise
            currency: ISO currency code
            receipt: Merchant receipt, at most 40 characters
            notes: Correlation metadata echoed back in webhooks
        """
        data = await self._request(
            "POST",
            "/orders",
            json_data={
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )
        return GatewayOrder(
            id=data["id"],
            amount=data.get("amount", amount),
            currency=data.get("currency", currency),
            receipt=data.get("receipt"),
            status=data.get("status", "created"),
        )

    async def create_payout(
        self,
        fund_account_id: str,
        amount: int,
        reference_id: str,
        currency: str = "INR",
        narration: str = "Payout",
        notes: Optional[dict] = None,
    ) -> GatewayPayout:
        """
        Initiate an IMPS payout from the RazorpayX account.

        ``reference_id`` is echoed back on payout webhooks and doubles as the
        idempotency key for the request.
        """
        if not self.account_number:
            raise RazorpayError("RAZORPAYX_ACCOUNT_NUMBER is not configured")

        data = await self._request(
            "POST",
            "/payouts",
            json_data={
                "account_number": self.account_number,
                "fund_account_id": fund_account_id,
                "amount": amount,
                "currency": currency,
                "mode": "IMPS",
                "purpose": "vendor_payout",
                "queue_if_low_balance": True,
                "reference_id": reference_id,
                "narration": narration,
                "notes": notes or {},
            },
            headers={"X-Payout-Idempotency": reference_id},
        )
        return GatewayPayout(
            id=data["id"],
            reference_id=data.get("reference_id"),
            status=data.get("status", "queued"),
            amount=data.get("amount", amount),
            currency=data.get("currency", currency),
            raw=data,
        )
