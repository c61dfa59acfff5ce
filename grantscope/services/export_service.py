"""CSV and PDF exports of analyzed foundations."""
from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from typing import List, Sequence

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import letter as rl_letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from grantscope.facets import summarize, totals_by
from grantscope.models import Foundation, Grantee

CSV_COLUMNS = ["Foundation", "Grantee", "Year", "City", "State", "Amount", "Purpose"]

# Rows beyond this are summarized rather than rendered
MAX_PDF_GRANTEE_ROWS = 500


def format_currency(amount: float) -> str:
    return f"${amount:,.0f}"


def grantees_csv(grantees: Sequence[Grantee]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    for g in grantees:
        writer.writerow([
            g.foundation_name or "",
            g.name,
            g.year,
            g.city,
            g.state,
            g.amount,
            g.purpose,
        ])
    return buf.getvalue()


def esc(s: str) -> str:
    return (s or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _table(rows: List[List[str]], widths: List[float]) -> Table:
    t = Table(rows, colWidths=widths, repeatRows=1)
    t.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#E5E7EB")),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return t


def foundations_pdf(foundations: Sequence[Foundation], grantees: Sequence[Grantee], title: str = "Form 990 Analysis") -> bytes:
    """Render an overview, one section per foundation and the grantee table."""
    styles = getSampleStyleSheet()
    base = ParagraphStyle(
        "base", parent=styles["Normal"], fontName="Helvetica",
        fontSize=9.5, leading=12, spaceAfter=2, alignment=TA_LEFT
    )
    head = ParagraphStyle(
        "head", parent=base, fontName="Helvetica-Bold", fontSize=12,
        spaceBefore=8, spaceAfter=4
    )
    cell = ParagraphStyle("cell", parent=base, fontSize=8, leading=9.5, spaceAfter=0)

    story = [Paragraph(f"<b>{esc(title)}</b>", styles["Title"])]
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    story.append(Paragraph(f"Generated {generated}", base))

    overview = summarize(foundations, grantees)
    story.append(Paragraph("Overview", head))
    story.append(Paragraph(
        f"Analyzed {overview['foundations']} foundation{'s' if overview['foundations'] != 1 else ''} "
        f"with a total of {overview['totalGrantees']} grants worth "
        f"{format_currency(overview['totalGrantAmount'])}.", base))
    story.append(Paragraph(
        f"<b>Total assets:</b> {format_currency(overview['totalAssets'])} "
        f"<b>Total giving:</b> {format_currency(overview['totalGiving'])} "
        f"<b>Average grant:</b> {format_currency(overview['averageGrantAmount'])}", base))

    for f in foundations:
        label = esc(f.name) + (" (sample data)" if f.sample else "")
        story.append(Paragraph(label, head))
        if f.ein:
            story.append(Paragraph(f"<b>EIN:</b> {esc(f.ein)}", base))
        story.append(Paragraph(
            f"<b>Assets:</b> {format_currency(f.total_assets)} "
            f"<b>Giving:</b> {format_currency(f.total_giving)} "
            f"<b>Average grant:</b> {format_currency(f.average_grant_amount)} "
            f"<b>Median grant:</b> {format_currency(f.median_grant_amount)}", base))
        contact = f.contact_info.to_dict()
        if contact:
            parts = [f"<b>{esc(k.title())}:</b> {esc(v)}" for k, v in contact.items()]
            story.append(Paragraph(" ".join(parts), base))
        for person in f.key_personnel:
            story.append(Paragraph(f"{esc(person.name)}, {esc(person.role)}", base))

    if grantees:
        story.append(Paragraph("Giving by state", head))
        rows = [["State", "Total"]] + [[s or "-", format_currency(v)] for s, v in totals_by(grantees, lambda g: g.state).items()]
        story.append(_table(rows, [120, 120]))

        story.append(Paragraph("Giving by purpose", head))
        rows = [["Purpose", "Total"]] + [[p or "-", format_currency(v)] for p, v in totals_by(grantees, lambda g: g.purpose).items()]
        story.append(_table(rows, [240, 120]))

        story.append(Paragraph("Grantees", head))
        rows = [["Grantee", "Foundation", "Year", "Location", "Amount", "Purpose"]]
        for g in grantees[:MAX_PDF_GRANTEE_ROWS]:
            loc = ", ".join(p for p in (g.city, g.state) if p)
            rows.append([
                Paragraph(esc(g.name), cell),
                Paragraph(esc(g.foundation_name or ""), cell),
                str(g.year),
                Paragraph(esc(loc), cell),
                format_currency(g.amount),
                Paragraph(esc(g.purpose), cell),
            ])
        story.append(_table(rows, [130, 100, 35, 80, 60, 107]))
        if len(grantees) > MAX_PDF_GRANTEE_ROWS:
            story.append(Spacer(1, 4))
            story.append(Paragraph(f"{len(grantees) - MAX_PDF_GRANTEE_ROWS} more grantees omitted; see CSV export.", base))

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=rl_letter,
        leftMargin=50,
        rightMargin=50,
        topMargin=45,
        bottomMargin=45,
        title=title,
    )
    doc.build(story)
    return buf.getvalue()
