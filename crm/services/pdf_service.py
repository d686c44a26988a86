"""Quotation PDF rendering with reportlab platypus."""

import html
import io

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


def _money(value):
    return f"${float(value or 0):,.2f}"


def _date(value):
    return value.strftime("%Y-%m-%d") if value else ""


def _text(value):
    lines = [line.strip() for line in str(value or "").splitlines() if line.strip()]
    return "<br/>".join(html.escape(line) for line in lines)


def generate_quotation_pdf(quotation, company=None):
    """Render `quotation` to PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f"Quotation {quotation.quotation_number}",
    )
    styles = getSampleStyleSheet()
    body = styles["BodyText"]
    heading = styles["Heading3"]

    elements = [Paragraph("QUOTATION", styles["Title"])]
    if company is not None:
        elements.append(Paragraph(html.escape(company.name or ""), heading))

    elements += [
        Paragraph(f"Quotation #: {html.escape(quotation.quotation_number)}", body),
        Paragraph(f"Date: {_date(quotation.date)}", body),
        Paragraph(f"Valid Until: {_date(quotation.valid_until)}", body),
        Spacer(1, 6 * mm),
        Paragraph("Client Information", heading),
        Paragraph(f"Name: {html.escape(quotation.client_name or '')}", body),
        Paragraph(f"Company: {html.escape(quotation.client_company or '')}", body),
        Paragraph(f"Email: {html.escape(quotation.client_email or '')}", body),
    ]
    if quotation.client_address:
        elements.append(Paragraph(f"Address: {_text(quotation.client_address)}", body))
    elements.append(Spacer(1, 6 * mm))

    rows = [["#", "Description", "Qty", "Price", "Amount"]]
    for i, item in enumerate(quotation.items or [], start=1):
        rows.append([
            str(i),
            Paragraph(_text(item.get("description")), body),
            f"{item.get('quantity', 0):g}",
            _money(item.get("unitPrice")),
            _money(item.get("amount")),
        ])
    rows += [
        ["", "", "", "Subtotal", _money(quotation.subtotal)],
        ["", "", "", "Tax", _money(quotation.tax)],
        ["", "", "", "Total", _money(quotation.total)],
    ]

    n_items = len(quotation.items or [])
    table = Table(rows, colWidths=[10 * mm, 80 * mm, 15 * mm, 30 * mm, 35 * mm], repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("LINEBELOW", (0, 0), (-1, 0), 0.75, colors.black),
        ("LINEBELOW", (0, n_items), (-1, n_items), 0.75, colors.black),
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("FONTNAME", (3, -1), (-1, -1), "Helvetica-Bold"),
    ]))
    elements += [Paragraph("Items", heading), table, Spacer(1, 8 * mm)]

    if quotation.notes:
        elements += [Paragraph("Notes", heading), Paragraph(_text(quotation.notes), body)]
    if quotation.terms:
        elements += [
            Paragraph("Terms and Conditions", heading),
            Paragraph(_text(quotation.terms), body),
        ]

    doc.build(elements)
    return buffer.getvalue()
