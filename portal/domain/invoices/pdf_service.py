"""Invoice PDF rendering with reportlab"""

import io
import logging
from html import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ...models_invoice import Invoice
from .totals import format_cents

logger = logging.getLogger(__name__)


class InvoicePDFGenerator:
    """Generate a one-document PDF for an invoice"""

    def __init__(self, invoice: Invoice):
        self.invoice = invoice
        self.margin = 0.75 * inch
        self.brand_color = colors.HexColor("#2563eb")
        self.dark_gray = colors.HexColor("#1e293b")
        self.light_gray = colors.HexColor("#f1f5f9")

    def _money(self, cents: int) -> str:
        return format_cents(cents, self.invoice.currency or "USD")

    def generate(self) -> bytes:
        invoice = self.invoice
        logger.info(f"📄 Generating PDF for invoice {invoice.invoice_number}")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"Invoice {invoice.invoice_number}",
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "InvoiceTitle",
            parent=styles["Heading1"],
            fontSize=22,
            textColor=self.brand_color,
            spaceAfter=12,
        )
        body_style = ParagraphStyle(
            "InvoiceBody",
            parent=styles["Normal"],
            fontSize=10,
            textColor=self.dark_gray,
            spaceAfter=4,
        )

        organization_name = invoice.organization.name if invoice.organization else ""
        story = [
            Paragraph(f"Invoice {escape(invoice.invoice_number)}", title_style),
            Paragraph(f"Billed to: {escape(organization_name)}", body_style),
            Paragraph(f"Issue date: {invoice.issue_date:%B %d, %Y}", body_style),
        ]
        if invoice.due_date:
            story.append(Paragraph(f"Due date: {invoice.due_date:%B %d, %Y}", body_style))
        story.append(Paragraph(f"Status: {invoice.status.replace('_', ' ').title()}", body_style))
        story.append(Spacer(1, 0.25 * inch))

        rows = [["Description", "Qty", "Unit price", "Amount"]]
        for item in invoice.line_items:
            rows.append([
                Paragraph(escape(item.description), body_style),
                f"{item.quantity:g}",
                self._money(item.unit_price),
                self._money(item.amount),
            ])

        table = Table(rows, colWidths=[3.6 * inch, 0.7 * inch, 1.2 * inch, 1.2 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
                    ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cbd5e1")),
                ]
            )
        )
        story.append(table)
        story.append(Spacer(1, 0.2 * inch))

        summary = [["Subtotal", self._money(invoice.subtotal)]]
        if invoice.discount_amount:
            summary.append(["Discount", f"-{self._money(invoice.discount_amount)}"])
        if invoice.tax_amount:
            summary.append([f"Tax ({invoice.tax_rate / 100:g}%)", self._money(invoice.tax_amount)])
        summary.append(["Total", self._money(invoice.total)])
        if invoice.amount_paid:
            summary.append(["Paid", self._money(invoice.amount_paid)])
        summary.append(["Balance due", self._money(invoice.balance_due)])

        totals = Table(summary, colWidths=[1.5 * inch, 1.2 * inch], hAlign="RIGHT")
        totals.setStyle(
            TableStyle(
                [
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                    ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                    ("LINEABOVE", (0, -1), (-1, -1), 0.5, self.dark_gray),
                ]
            )
        )
        story.append(totals)

        if invoice.notes:
            story.append(Spacer(1, 0.3 * inch))
            story.append(Paragraph(escape(invoice.notes).replace("\n", "<br/>"), body_style))

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.info(f"✅ Invoice PDF generated ({len(pdf_bytes)} bytes)")
        return pdf_bytes


def generate_invoice_pdf(invoice: Invoice) -> bytes:
    return InvoicePDFGenerator(invoice).generate()
