"""
Printable asset movement form: one A4 page per lifecycle action with the
asset details, the from/to ownership blocks and signature lines.
"""
import io
from typing import List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from ..models.models import LifecycleAction


FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
MARGIN = 56
ROW_HEIGHT = 18


def _fmt(value: Optional[object]) -> str:
    if value is None or value == "":
        return "-"
    return str(value)


def _draw_rows(c: canvas.Canvas, x: float, y: float, width: float, rows: List[Tuple[str, str]]) -> float:
    label_w = width * 0.38
    for label, value in rows:
        c.setStrokeColor(colors.lightgrey)
        c.rect(x, y - ROW_HEIGHT, width, ROW_HEIGHT, stroke=1, fill=0)
        c.setFont(FONT_BOLD, 9)
        c.setFillColor(colors.black)
        c.drawString(x + 4, y - ROW_HEIGHT + 5, label)
        c.setFont(FONT, 9)
        c.drawString(x + label_w, y - ROW_HEIGHT + 5, value[:60])
        y -= ROW_HEIGHT
    return y


def _section(c: canvas.Canvas, title: str, x: float, y: float) -> float:
    c.setFont(FONT_BOLD, 11)
    c.setFillColor(colors.HexColor("#1f3a5f"))
    c.drawString(x, y, title)
    return y - 6


def build_movement_form_pdf(action: LifecycleAction, organisation: str = "ICT Department") -> bytes:
    """Generate the printable movement form for ``action``."""
    buf = io.BytesIO()
    page_width, page_height = A4
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Asset Movement Form {action.id}")

    y = page_height - MARGIN
    c.setFont(FONT_BOLD, 16)
    c.drawCentredString(page_width / 2, y, "ASSET MOVEMENT FORM")
    y -= 18
    c.setFont(FONT, 10)
    c.drawCentredString(page_width / 2, y, organisation)
    y -= 30

    content_w = page_width - 2 * MARGIN
    y = _section(c, "Request", MARGIN, y)
    y = _draw_rows(c, MARGIN, y, content_w, [
        ("Reference", str(action.id)),
        ("Action", _fmt(action.action_type)),
        ("Deployment", _fmt(action.deployment_type)),
        ("Request date", action.request_date.strftime("%Y-%m-%d %H:%M") if action.request_date else "-"),
        ("Requested by", _fmt(action.requested_by_name)),
        ("Status", _fmt(action.status)),
    ])
    y -= 20

    y = _section(c, "Assets", MARGIN, y)
    asset_rows = [("Primary serial", _fmt(action.primary_asset_serial))]
    if action.secondary_asset_serial:
        asset_rows.append(("Secondary serial", action.secondary_asset_serial))
    if action.asset_pair_type:
        asset_rows.append(("Pair type", action.asset_pair_type))
    y = _draw_rows(c, MARGIN, y, content_w, asset_rows)
    y -= 20

    half_w = (content_w - 12) / 2
    top = y
    y_from = _section(c, "From", MARGIN, top)
    y_from = _draw_rows(c, MARGIN, y_from, half_w, [
        ("Holder", _fmt(action.from_holder)),
        ("Domain account", _fmt(action.from_domain_account)),
        ("Location", _fmt(action.from_location)),
        ("Department", _fmt(action.from_department)),
        ("Section", _fmt(action.from_section)),
    ])
    x_to = MARGIN + half_w + 12
    y_to = _section(c, "To", x_to, top)
    y_to = _draw_rows(c, x_to, y_to, half_w, [
        ("Holder", _fmt(action.to_holder)),
        ("Domain account", _fmt(action.to_domain_account)),
        ("Location", _fmt(action.to_location)),
        ("Department", _fmt(action.to_department)),
        ("Section", _fmt(action.to_section)),
    ])
    y = min(y_from, y_to) - 20

    if action.comments:
        y = _section(c, "Comments", MARGIN, y)
        c.setFont(FONT, 9)
        c.setFillColor(colors.black)
        for line in str(action.comments).replace("\r\n", "\n").split("\n")[:6]:
            y -= 12
            c.drawString(MARGIN, y, line[:110])
        y -= 20

    y = _section(c, "Signatures", MARGIN, y) - 30
    c.setFillColor(colors.black)
    c.setFont(FONT, 9)
    for label in ("Released by", "Received by", "ICT Officer"):
        c.line(MARGIN, y, MARGIN + 200, y)
        c.line(MARGIN + 260, y, MARGIN + 380, y)
        c.drawString(MARGIN, y - 12, f"{label} (name and signature)")
        c.drawString(MARGIN + 260, y - 12, "Date")
        y -= 50

    c.showPage()
    c.save()
    buf.seek(0)
    return buf.read()
