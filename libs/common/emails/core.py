"""
Direct SMTP sending, used when the Communications Service is unreachable.
"""

import asyncio
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

# (filename, content, mime subtype)
Attachment = tuple[str, bytes, str]


def _build_message(
    sender: str,
    to_email: str,
    subject: str,
    body: str,
    html_body: Optional[str],
    attachments: list[Attachment],
) -> MIMEMultipart:
    msg = MIMEMultipart("mixed")
    alternative = MIMEMultipart("alternative")
    alternative.attach(MIMEText(body, "plain"))
    if html_body:
        alternative.attach(MIMEText(html_body, "html"))
    msg.attach(alternative)

    for filename, content, subtype in attachments:
        part = MIMEApplication(content, _subtype=subtype)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to_email
    return msg


async def send_email(
    to_email: str,
    subject: str,
    body: str,
    html_body: Optional[str] = None,
    attachments: Optional[list[Attachment]] = None,
    from_email: Optional[str] = None,
    from_name: Optional[str] = None,
) -> bool:
    """
    Send an email over SMTP.

    Returns:
        True if the message was handed to the relay, False otherwise.
    """
    settings = get_settings()

    if not settings.SMTP_PASSWORD or not settings.SMTP_USERNAME:
        logger.warning("SMTP credentials not configured - email not sent")
        logger.info(f"Would have sent email to {to_email}: {subject}")
        return False

    sender_email = from_email or settings.DEFAULT_FROM_EMAIL
    sender_name = from_name or settings.DEFAULT_FROM_NAME
    msg = _build_message(
        f"{sender_name} <{sender_email}>",
        to_email,
        subject,
        body,
        html_body,
        attachments or [],
    )

    def _deliver() -> None:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            server.starttls()
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(sender_email, to_email, msg.as_string())

    try:
        logger.info(f"Sending email to {to_email}: {subject}")
        await asyncio.to_thread(_deliver)
    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"SMTP authentication failed: {e}")
        return False
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP error sending email: {e}")
        return False

    logger.info(f"Email sent successfully to {to_email}")
    return True
