"""
exporter.py — Printable PDF export of a guide
=============================================
Renders one guide as an A4 document with reportlab:

  • theme-coloured banner: institution, guide name, student label,
    weighted average and progress
  • one section per period ("1. Semester", "2. Semester", …) with a table
    of that period's subjects (name, credits, status, score)
  • footer band with the generation date

The exporter only reads the guide; metrics come from GuideEngine.
"""

from __future__ import annotations

import io
import re
from datetime import date
from typing import Optional
from xml.sax.saxutils import escape

from curriculum_map.guide_engine import GuideEngine
from curriculum_map.models import Guide, SubjectStatus, get_theme

STATUS_LABELS: dict[SubjectStatus, str] = {
    SubjectStatus.BLOCKED:     "Blocked",
    SubjectStatus.AVAILABLE:   "Available",
    SubjectStatus.IN_PROGRESS: "In progress",
    SubjectStatus.APPROVED:    "Approved",
}

STATUS_COLOURS: dict[SubjectStatus, str] = {
    SubjectStatus.BLOCKED:     "#6b7280",
    SubjectStatus.AVAILABLE:   "#2563eb",
    SubjectStatus.IN_PROGRESS: "#d97706",
    SubjectStatus.APPROVED:    "#16a34a",
}


def _rl_colour(hex_str: str):
    """Convert a CSS hex colour string to a reportlab Color."""
    from reportlab.lib import colors as rl_colors
    h = hex_str.lstrip("#")
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    r, g, b = int(h[0:2], 16) / 255, int(h[2:4], 16) / 255, int(h[4:6], 16) / 255
    return rl_colors.Color(r, g, b)


def export_filename(guide: Guide) -> str:
    """``curriculum-map-<slug>.pdf`` for *guide*."""
    slug = re.sub(r"[^a-z0-9]+", "-", guide.name.lower()).strip("-") or "guide"
    return f"curriculum-map-{slug}.pdf"


class DocumentExporter:
    """Builds the PDF bytes for a guide; writing them anywhere is the caller's job."""

    def __init__(self, engine: Optional[GuideEngine] = None):
        self.engine = engine or GuideEngine()

    def export(self, guide: Guide, theme, student_label: str) -> bytes:
        from reportlab.lib import colors as rl_colors
        from reportlab.lib.enums import TA_CENTER, TA_RIGHT
        from reportlab.lib.pagesizes import A4
        from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
        from reportlab.lib.units import cm
        from reportlab.platypus import (
            HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle,
        )

        palette = get_theme(theme)
        summary = self.engine.summary(guide)

        buf = io.BytesIO()
        doc = SimpleDocTemplate(
            buf, pagesize=A4,
            leftMargin=1.8 * cm, rightMargin=1.8 * cm,
            topMargin=1.8 * cm, bottomMargin=1.8 * cm,
            title=guide.name,
        )

        styles  = getSampleStyleSheet()
        PRIMARY = _rl_colour(palette["primary"])
        ACCENT  = _rl_colour(palette["accent"])
        DARK    = _rl_colour("#1f2937")
        MUTED   = _rl_colour("#6b7280")
        SECTION = _rl_colour("#f0f0f0")
        WHITE   = rl_colors.white

        banner_left = ParagraphStyle("BannerL", parent=styles["Heading1"],
                                     textColor=WHITE, fontSize=15, leading=19, spaceAfter=0)
        banner_right = ParagraphStyle("BannerR", parent=styles["Normal"],
                                      textColor=WHITE, fontSize=11, leading=16,
                                      alignment=TA_RIGHT)
        h2 = ParagraphStyle("H2", parent=styles["Heading2"],
                            textColor=DARK, fontSize=12, leading=15, spaceAfter=0)
        body = ParagraphStyle("Body", parent=styles["Normal"],
                              textColor=DARK, fontSize=9, leading=12)

        story = []
        today = date.today().strftime("%B %d, %Y")

        # ── Header banner ─────────────────────────────────────────────────────
        banner = Table([[
            Paragraph(
                f"<b>{escape(guide.institution or '—')}</b><br/>"
                f"{escape(guide.name)}<br/>"
                f"<font size='10'>Student: {escape(student_label)}</font>",
                banner_left,
            ),
            Paragraph(
                f"Average: <b>{summary.weighted_average:.2f}</b><br/>"
                f"Progress: <b>{summary.progress_pct:.1f}%</b>",
                banner_right,
            ),
        ]], colWidths=[doc.width * 0.65, doc.width * 0.35])
        banner.setStyle(TableStyle([
            ("BACKGROUND",    (0, 0), (-1, -1), PRIMARY),
            ("VALIGN",        (0, 0), (-1, -1), "MIDDLE"),
            ("LEFTPADDING",   (0, 0), (-1, -1), 10),
            ("RIGHTPADDING",  (0, 0), (-1, -1), 10),
            ("TOPPADDING",    (0, 0), (-1, -1), 12),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 12),
        ]))
        story.append(banner)
        story.append(Spacer(1, 0.4 * cm))

        # ── Periods ───────────────────────────────────────────────────────────
        if not guide.subjects:
            story.append(Paragraph("This guide has no subjects yet.", body))

        col_w = [doc.width * f for f in [0.52, 0.14, 0.20, 0.14]]
        for period in guide.periods():
            section = Table(
                [[Paragraph(f"{period}. {guide.period_label}", h2)]],
                colWidths=[doc.width],
            )
            section.setStyle(TableStyle([
                ("BACKGROUND",    (0, 0), (-1, -1), SECTION),
                ("TOPPADDING",    (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]))
            story.append(section)
            story.append(Spacer(1, 0.15 * cm))

            rows = [["Subject", "Credits", "Status", "Score"]]
            for s in guide.subjects_in_period(period):
                status_cell = Paragraph(
                    STATUS_LABELS[s.status],
                    ParagraphStyle("St", parent=body, alignment=TA_CENTER,
                                   textColor=_rl_colour(STATUS_COLOURS[s.status])),
                )
                rows.append([
                    Paragraph(escape(s.name), body),
                    f"{s.credits} cr.",
                    status_cell,
                    f"{s.score:g}" if s.score is not None else "—",
                ])
            table = Table(rows, colWidths=col_w, repeatRows=1)
            table.setStyle(TableStyle([
                ("BACKGROUND",     (0, 0), (-1, 0), PRIMARY),
                ("TEXTCOLOR",      (0, 0), (-1, 0), WHITE),
                ("FONTNAME",       (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE",       (0, 0), (-1, -1), 8.5),
                ("ALIGN",          (1, 0), (-1, -1), "CENTER"),
                ("ALIGN",          (0, 0), (0, -1), "LEFT"),
                ("VALIGN",         (0, 0), (-1, -1), "MIDDLE"),
                ("ROWPADDING",     (0, 0), (-1, -1), 5),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, ACCENT]),
                ("GRID",           (0, 0), (-1, -1), 0.4, rl_colors.lightgrey),
            ]))
            story.append(table)
            story.append(Spacer(1, 0.4 * cm))

        # ── Footer ────────────────────────────────────────────────────────────
        story.append(Spacer(1, 0.3 * cm))
        story.append(HRFlowable(width="100%", thickness=2, color=PRIMARY))
        story.append(Paragraph(
            f"{summary.approved_credits} of {summary.total_credits} credits approved · "
            f"Generated on {today} by <b>Curriculum Map</b>",
            ParagraphStyle("Footer", parent=styles["Normal"],
                           textColor=MUTED, fontSize=7.5, alignment=TA_CENTER),
        ))

        doc.build(story)
        return buf.getvalue()
