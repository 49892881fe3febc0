"""
Payout-related email templates.
"""

from typing import Optional

from libs.common.currency import format_paise
from libs.common.emails.client import EmailClient


async def send_payout_invoice_email(
    email_client: EmailClient,
    *,
    to_email: str,
    educator_name: Optional[str],
    invoice_number: str,
    net_amount: int,
    currency: str,
    pdf_bytes: bytes,
) -> bool:
    """
    Send the payout invoice PDF to an educator once their payout has been paid.
    """
    amount_display = format_paise(net_amount, currency)
    name = educator_name or "there"
    subject = f"Payout Processed - {amount_display}"

    body = f"""Hi {name},

Your payout of {amount_display} has been processed and should reach your bank account shortly.

Reference: {invoice_number}

Your invoice is attached to this email for your records.

— The EduMarket Team
"""

    html_body = f"""
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: linear-gradient(135deg, #6366f1 0%, #4f46e5 100%); color: white; padding: 30px; border-radius: 12px 12px 0 0; }}
        .content {{ background: #f8fafc; padding: 30px; border-radius: 0 0 12px 12px; }}
        .details {{ background: white; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #6366f1; }}
        .label {{ color: #64748b; font-size: 14px; }}
        .value {{ font-weight: 600; color: #1e293b; }}
        .footer {{ text-align: center; color: #64748b; font-size: 14px; margin-top: 20px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1 style="margin: 0;">Payout Processed</h1>
        </div>
        <div class="content">
            <p>Hi {name},</p>
            <p>Your payout has been processed and should reach your bank account shortly.</p>
            <div class="details">
                <p><span class="label">Reference:</span> <span class="value">{invoice_number}</span></p>
                <p><span class="label">Amount:</span> <span class="value">{amount_display}</span></p>
            </div>
            <p>Your invoice is attached to this email for your records.</p>
            <div class="footer">
                <p>— The EduMarket Team</p>
            </div>
        </div>
    </div>
</body>
</html>
"""

    return await email_client.send(
        to_email=to_email,
        subject=subject,
        body=body,
        html_body=html_body,
        attachments=[(f"payout-invoice-{invoice_number}.pdf", pdf_bytes, "pdf")],
    )
