from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle

from umrah_office.domain import Invoice

PRIMARY = colors.HexColor("#03989e")

STATUS_COLORS = {
    "draft": colors.HexColor("#9ca3af"),
    "sent": PRIMARY,
    "paid": colors.HexColor("#22c55e"),
    "overdue": colors.HexColor("#ef4444"),
}


def format_amount(amount: float, currency: str = "DH") -> str:
    return f"{amount:,.2f} {currency}"


def _fmt_qty(qty: float) -> str:
    return str(int(qty)) if float(qty).is_integer() else str(qty)


def build_invoice_pdf(invoice: Invoice, agency_name: str = "Agence de Voyage", currency: str = "DH") -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    # header band
    c.setFillColor(PRIMARY)
    c.rect(0, height - 80, width, 80, stroke=0, fill=1)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 22)
    c.drawString(50, height - 50, agency_name)

    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 20)
    c.drawString(50, height - 120, "INVOICE")

    c.setFont("Helvetica", 11)
    created = invoice.created_at.date().isoformat() if invoice.created_at else ""
    c.drawString(50, height - 140, f"Invoice Number: {invoice.invoice_number}")
    c.drawString(50, height - 155, f"Date: {created}")
    c.drawString(50, height - 170, f"Due Date: {invoice.due_date or '-'}")

    # status badge
    c.setFillColor(STATUS_COLORS.get(invoice.status, STATUS_COLORS["draft"]))
    c.roundRect(width - 150, height - 135, 90, 20, 4, stroke=0, fill=1)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 10)
    c.drawCentredString(width - 105, height - 128, invoice.status.upper())

    # bill to / agent
    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 12)
    c.drawString(50, height - 205, "Bill To:")
    c.drawString(300, height - 205, "Agent:")
    c.setFont("Helvetica", 11)
    y = height - 222
    client = invoice.client
    for line in (
        client.name if client else "Unknown Client",
        client.email if client else "",
        client.phone if client else "",
        client.address if client else "",
    ):
        if line:
            c.drawString(50, y, line)
            y -= 15
    c.drawString(300, height - 222, invoice.agent_name or "")

    # travel details
    y = min(y, height - 260) - 10
    c.setFont("Helvetica", 10)
    for label, value in (
        ("Passport", invoice.passport_number),
        ("Flight", invoice.flight_number),
        ("Room", invoice.room_type),
        ("Visa", invoice.visa_status),
        ("Departure", invoice.departure_date),
    ):
        if value:
            c.drawString(50, y, f"{label}: {value}")
            y -= 14

    # items
    data = [["Description", "Qty", "Unit Price", "Total"]]
    for item in invoice.items:
        data.append(
            [
                item.description,
                _fmt_qty(item.quantity),
                format_amount(item.unit_price, currency),
                format_amount(item.total, currency),
            ]
        )
    data.append(["", "", "Subtotal", format_amount(invoice.subtotal, currency)])
    data.append(["", "", "Tax", format_amount(invoice.tax, currency)])
    data.append(["", "", "Total", format_amount(invoice.total, currency)])

    table = Table(data, colWidths=[230, 50, 100, 100])
    style = TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), PRIMARY),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (1, 1), (-1, -1), "CENTER"),
        ("GRID", (0, 0), (-1, len(invoice.items)), 0.5, colors.grey),
        ("FONTNAME", (2, -1), (-1, -1), "Helvetica-Bold"),
    ])
    table.setStyle(style)

    _, table_height = table.wrapOn(c, width, height)
    table_top = y - 20
    if table_top - table_height < 50:
        c.showPage()
        table_top = height - 50
    table.drawOn(c, 50, table_top - table_height)

    if invoice.notes:
        c.setFont("Helvetica-Oblique", 9)
        c.drawString(50, max(table_top - table_height - 25, 30), f"Notes: {invoice.notes}")

    c.save()
    return buffer.getvalue()
