from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from saferental.core.date_helper import utcnow
from saferental.core.threads import run_in_thread

STANDARD_TERMS = [
    "The tenant shall pay the monthly rent on or before the due date each month.",
    "The security deposit shall be refunded at the end of the lease, less any "
    "deductions for damages beyond normal wear and tear.",
    "The tenant shall keep the property clean and in good condition.",
    "The tenant shall not sublet the property without written consent of the landlord.",
    "The landlord shall be responsible for major repairs and structural maintenance.",
    "Either party may terminate this agreement with 30 days written notice.",
    "The tenant shall comply with all applicable laws and regulations.",
    "Any disputes shall be resolved through mutual discussion or appropriate legal means.",
]

DETAIL_TABLE_STYLE = TableStyle(
    [
        ("BACKGROUND", (0, 0), (0, -1), colors.whitesmoke),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
        ("FONT", (0, 0), (0, -1), "Helvetica-Bold"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]
)


@dataclass(frozen=True)
class GeneratedDocument:
    pdf_bytes: bytes
    path: Path


class AgreementPDFGenerator:
    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def file_path_for(self, agreement_number: str) -> Path:
        return self.output_dir / f"rental-agreement-{agreement_number}.pdf"

    async def generate(self, agreement) -> GeneratedDocument:
        return await run_in_thread(self.render_to_file, agreement)

    def render_to_file(self, agreement) -> GeneratedDocument:
        pdf_bytes = self.render(agreement)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.file_path_for(agreement.agreement_number)
        path.write_bytes(pdf_bytes)
        return GeneratedDocument(pdf_bytes=pdf_bytes, path=path)

    @staticmethod
    def _styles():
        styles = getSampleStyleSheet()
        styles.add(
            ParagraphStyle(
                name="TitleStyle",
                fontSize=20,
                alignment=TA_CENTER,
                spaceAfter=12,
                textColor=colors.HexColor("#1F2937"),
            )
        )
        styles.add(
            ParagraphStyle(
                name="SectionHeader",
                fontSize=13,
                spaceBefore=14,
                spaceAfter=6,
                textColor=colors.HexColor("#111827"),
                fontName="Helvetica-Bold",
            )
        )
        styles.add(
            ParagraphStyle(
                name="Meta",
                fontSize=9,
                alignment=TA_RIGHT,
                textColor=colors.grey,
            )
        )
        return styles

    @staticmethod
    def _detail_table(rows):
        table = Table(rows, colWidths=[140, None])
        table.setStyle(DETAIL_TABLE_STYLE)
        return table

    def render(self, agreement) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=40,
            leftMargin=40,
            topMargin=40,
            bottomMargin=40,
            title=f"Rental Agreement {agreement.agreement_number}",
        )
        styles = self._styles()
        elements = []

        elements.append(Paragraph("RENTAL AGREEMENT", styles["TitleStyle"]))
        elements.append(
            Paragraph(
                f"Agreement Number: <b>{agreement.agreement_number}</b>",
                styles["Meta"],
            )
        )
        elements.append(Spacer(1, 16))

        lease_rows = [
            ["Property Address", agreement.property_address],
            ["Monthly Rent", f"{agreement.monthly_rent:,.2f}"],
        ]
        if agreement.security_deposit is not None:
            lease_rows.append(["Security Deposit", f"{agreement.security_deposit:,.2f}"])
        lease_rows += [
            ["Lease Duration", agreement.lease_duration],
            ["Start Date", agreement.lease_start_date.strftime("%d %B %Y")],
            ["End Date", agreement.lease_end_date.strftime("%d %B %Y")],
        ]
        elements.append(Paragraph("Lease Details", styles["SectionHeader"]))
        elements.append(self._detail_table(lease_rows))

        elements.append(Paragraph("Tenant Information", styles["SectionHeader"]))
        elements.append(
            self._detail_table(
                [
                    ["Name", agreement.tenant_full_name],
                    ["Email", agreement.tenant_email],
                    ["Phone", agreement.tenant_phone],
                    ["Date of Birth", agreement.tenant_dob.strftime("%d %B %Y")],
                    ["Address", agreement.tenant_address],
                ]
            )
        )

        elements.append(Paragraph("Landlord Information", styles["SectionHeader"]))
        elements.append(
            self._detail_table(
                [
                    ["Name", agreement.landlord_full_name],
                    ["Email", agreement.landlord_email],
                    ["Phone", agreement.landlord_phone],
                    ["Address", agreement.landlord_address],
                ]
            )
        )

        elements.append(Paragraph("Terms and Conditions", styles["SectionHeader"]))
        for number, term in enumerate(STANDARD_TERMS, start=1):
            elements.append(Paragraph(f"{number}. {term}", styles["Normal"]))
            elements.append(Spacer(1, 4))

        elements.append(Spacer(1, 30))
        signatures = Table(
            [
                ["_" * 30, "_" * 30],
                ["Tenant Signature", "Landlord Signature"],
                [agreement.tenant_full_name, agreement.landlord_full_name],
            ],
            colWidths=[None, None],
        )
        signatures.setStyle(
            TableStyle(
                [
                    ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                    ("FONT", (0, 1), (-1, 1), "Helvetica-Bold"),
                ]
            )
        )
        elements.append(signatures)

        elements.append(Spacer(1, 24))
        elements.append(
            Paragraph(
                f"Generated on {utcnow().strftime('%d %B %Y')} by SafeRental. "
                "Both parties verified their identity by one-time code.",
                styles["Meta"],
            )
        )

        doc.build(elements)
        return buffer.getvalue()
