"""
Printable dashboard: headline counts followed by the current room board.
"""
from io import BytesIO
from datetime import datetime
from typing import Iterable, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from ..services.rooms import RoomStatus


BRAND = colors.HexColor("#1f3a5f")

STAT_LABELS = (
    ("total_companies", "Active companies"),
    ("total_employees", "Active employees"),
    ("active_services", "Active services"),
    ("todays_operations", "Operations today"),
    ("occupied_rooms", "Occupied rooms"),
    ("total_rooms", "Tracked rooms"),
)


def _table_style(header_bg) -> TableStyle:
    return TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), header_bg),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f4f6f9")]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ])


def build_dashboard_pdf(
    company_name: str,
    stats: dict,
    rooms: Iterable[RoomStatus],
    generated_at: Optional[datetime] = None,
) -> bytes:
    generated_at = generated_at or datetime.utcnow()
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=54,
        leftMargin=54,
        topMargin=54,
        bottomMargin=54,
        title=f"{company_name} dashboard",
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "DashTitle",
        parent=styles["Heading1"],
        fontSize=22,
        textColor=BRAND,
        spaceAfter=6,
    )
    meta_style = ParagraphStyle(
        "DashMeta",
        parent=styles["Normal"],
        fontSize=9,
        textColor=colors.HexColor("#666666"),
    )

    story = [
        Paragraph(escape(company_name), title_style),
        Paragraph(f"Generated {generated_at.strftime('%d %B %Y %H:%M')} UTC", meta_style),
        Spacer(1, 0.3 * inch),
        Paragraph("Summary", styles["Heading2"]),
    ]

    stat_rows = [["Metric", "Value"]]
    stat_rows += [[label, str(stats.get(key, 0))] for key, label in STAT_LABELS]
    stat_table = Table(stat_rows, colWidths=[3.5 * inch, 1.5 * inch])
    stat_table.setStyle(_table_style(BRAND))
    story += [stat_table, Spacer(1, 0.3 * inch), Paragraph("Rooms", styles["Heading2"])]

    room_rows = [["Room", "Status", "Guest", "Guests", "Checked in"]]
    for r in rooms:
        room_rows.append([
            r.room_number,
            r.status,
            r.guest_name,
            str(r.number_of_people),
            r.check_in_date.strftime("%d %b %Y") if r.check_in_date else "-",
        ])
    if len(room_rows) == 1:
        story.append(Paragraph("No check-ins recorded yet.", styles["Normal"]))
    else:
        room_table = Table(room_rows, colWidths=[0.9 * inch, 1.0 * inch, 2.2 * inch, 0.8 * inch, 1.3 * inch], repeatRows=1)
        room_table.setStyle(_table_style(BRAND))
        story.append(room_table)

    doc.build(story)
    return buffer.getvalue()
