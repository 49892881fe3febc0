"""
PDF generation utilities using ReportLab.
"""

import io
from datetime import datetime
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from libs.common.currency import format_paise

_LABEL_TABLE_STYLE = TableStyle(
    [
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 11),
        ("TEXTCOLOR", (0, 0), (0, -1), colors.HexColor("#64748b")),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]
)


def generate_payout_invoice_pdf(
    *,
    invoice_number: str,
    educator_name: str,
    educator_email: Optional[str],
    period_label: str,
    status: str,
    gross_amount: int,
    commission_amount: int,
    net_amount: int,
    currency: str = "INR",
    gateway_payout_id: Optional[str] = None,
    narration: Optional[str] = None,
    invoice_date: Optional[datetime] = None,
) -> bytes:
    """
    Render a payout invoice for an educator.

    Amounts are in minor units (paise). Returns the PDF as bytes, ready to be
    attached to an email.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75 * inch,
        leftMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=f"Payout Invoice {invoice_number}",
    )

    styles = getSampleStyleSheet()
    elements = []

    title_style = ParagraphStyle(
        "InvoiceTitle",
        parent=styles["Heading1"],
        fontSize=22,
        textColor=colors.HexColor("#1e293b"),
        spaceAfter=16,
    )
    heading_style = ParagraphStyle(
        "InvoiceHeading",
        parent=styles["Heading2"],
        fontSize=13,
        textColor=colors.HexColor("#1e293b"),
        spaceBefore=16,
        spaceAfter=8,
    )

    invoice_date_str = (invoice_date or datetime.now()).strftime("%d %B %Y")

    elements.append(Paragraph("Payout Invoice", title_style))
    header_table = Table(
        [["Invoice Date:", invoice_date_str], ["Invoice #:", invoice_number]],
        colWidths=[1.6 * inch, 4.5 * inch],
    )
    header_table.setStyle(_LABEL_TABLE_STYLE)
    elements.append(header_table)

    elements.append(Paragraph("Educator", heading_style))
    educator_table = Table(
        [["Name:", educator_name or "Educator"], ["Email:", educator_email or "N/A"]],
        colWidths=[1.6 * inch, 4.5 * inch],
    )
    educator_table.setStyle(_LABEL_TABLE_STYLE)
    elements.append(educator_table)

    elements.append(Paragraph("Payout Details", heading_style))
    details = [
        ["Reference", invoice_number],
        ["Status", status],
        ["Period", period_label],
        ["Gross Amount", format_paise(gross_amount, currency)],
        ["Commission", format_paise(commission_amount, currency)],
        ["Net Payout", format_paise(net_amount, currency)],
    ]
    if gateway_payout_id:
        details.append(["Gateway Payout ID", gateway_payout_id])
    if narration:
        details.append(["Narration", narration])

    details_table = Table(details, colWidths=[2 * inch, 4.1 * inch])
    details_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#f8fafc")),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e2e8f0")),
                ("PADDING", (0, 0), (-1, -1), 8),
                # Net payout row
                ("FONTNAME", (0, 5), (-1, 5), "Helvetica-Bold"),
            ]
        )
    )
    elements.append(details_table)
    elements.append(Spacer(1, 24))

    footer_style = ParagraphStyle(
        "InvoiceFooter",
        parent=styles["Normal"],
        fontSize=9,
        textColor=colors.HexColor("#555555"),
    )
    elements.append(
        Paragraph(
            "This invoice was generated automatically after your payout was "
            "processed. Please keep it for your records.",
            footer_style,
        )
    )

    doc.build(elements)
    buffer.seek(0)
    return buffer.getvalue()
