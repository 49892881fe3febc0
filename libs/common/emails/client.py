"""
Email client for service-to-service email delivery.

Emails are routed through the Communications Service's `/email/send`
endpoint. Attachments are sent base64-encoded. If the Communications Service
cannot be reached the client falls back to direct SMTP.

Usage:
    email_client = EmailClient()

    await email_client.send(
        to_email="educator@example.com",
        subject="Payout Invoice",
        body="Plain text body",
        attachments=[("invoice.pdf", pdf_bytes, "pdf")],
    )
"""

import base64
from typing import Any, Optional

import httpx
from libs.auth.dependencies import _service_role_jwt
from libs.common.config import get_settings
from libs.common.emails.core import Attachment
from libs.common.logging import get_logger

logger = get_logger(__name__)


class EmailClient:
    """
    HTTP client for the Communications Service email API.

    Construct once per process and share; it holds no connection state.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = 30.0):
        self.base_url = (base_url or get_settings().COMMUNICATIONS_SERVICE_URL).rstrip(
            "/"
        )
        self.timeout = timeout

    def _get_auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {_service_role_jwt('payments')}"}

    async def send(
        self,
        to_email: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
        attachments: Optional[list[Attachment]] = None,
    ) -> bool:
        """
        Send a single email.

        Returns:
            True if the email was accepted, False otherwise.
        """
        payload: dict[str, Any] = {
            "to_email": to_email,
            "subject": subject,
            "body": body,
        }
        if html_body:
            payload["html_body"] = html_body
        if attachments:
            payload["attachments"] = [
                {
                    "filename": filename,
                    "content_base64": base64.b64encode(content).decode("ascii"),
                    "content_type": f"application/{subtype}",
                }
                for filename, content, subtype in attachments
            ]

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/email/send",
                    json=payload,
                    headers=self._get_auth_headers(),
                )
        except httpx.RequestError as e:
            logger.error(f"Failed to connect to Communications Service: {e}")
            return await self._fallback_send(
                to_email, subject, body, html_body, attachments
            )

        if response.status_code != 200:
            logger.error(f"Email API returned {response.status_code}: {response.text}")
            return False
        return bool(response.json().get("success", False))

    async def _fallback_send(
        self,
        to_email: str,
        subject: str,
        body: str,
        html_body: Optional[str],
        attachments: Optional[list[Attachment]],
    ) -> bool:
        logger.warning("Falling back to direct SMTP email send")
        from libs.common.emails.core import send_email

        return await send_email(
            to_email=to_email,
            subject=subject,
            body=body,
            html_body=html_body,
            attachments=attachments,
        )
