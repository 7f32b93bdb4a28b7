"""
Report Engine — renders the compliance PDF handed over by the export dialog.

Layout (A4, portrait or landscape):
  - Branded header / footer on every page
  - Executive summary + score            (include_summary)
  - Status breakdown bars                (include_charts)
  - Drawing with finding boxes overlaid  (include_bounding_boxes, image present)
  - Findings grouped by category
"""
import base64
import io
import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

from reportlab.lib.pagesizes import A4, landscape, portrait
from reportlab.lib.units import cm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas as rl_canvas

from app.services.errors import ExportError
from app.services.export_builder import ExportPackage
from app.services.findings_pipeline import group_by_category, status_breakdown
from app.services.overlay_mapper import status_color, valid_box

logger = logging.getLogger("sbc-report")

DEFAULT_COMPANY_NAME = "SBC COMPLIANCE REVIEW"
DEFAULT_COMPANY_SUB = "AI-assisted Saudi Building Code drawing review  |  SBC 201 / SBC 801"
DARK = (0.08, 0.08, 0.12)
TEXT = (0.2, 0.2, 0.2)
MUTED = (0.4, 0.4, 0.4)
SILVER = (0.58, 0.64, 0.72)

CONTENT_TOP_OFFSET = 4.5 * cm
BOTTOM_MARGIN = 2.5 * cm


def _hex_to_rgb(hex_color: str) -> tuple:
    """Convert '#RRGGBB' to (r, g, b) floats 0-1."""
    h = hex_color.lstrip("#")
    if len(h) != 6:
        return DARK
    return (int(h[0:2], 16) / 255, int(h[2:4], 16) / 255, int(h[4:6], 16) / 255)


# ── PDF helpers ───────────────────────────────────────────────────────────────

def _draw_header(c, page_w, page_h, company_name: str, company_sub: str, theme_rgb: tuple):
    c.setFillColorRGB(*theme_rgb)
    c.rect(0, page_h - 3*cm, page_w, 3*cm, fill=1, stroke=0)
    c.setFillColorRGB(1, 1, 1)
    c.setFont("Helvetica-Bold", 13)
    c.drawString(1.5*cm, page_h - 1.5*cm, company_name)
    c.setFont("Helvetica", 8)
    c.drawString(1.5*cm, page_h - 2.1*cm, company_sub)
    # Silver accent line
    c.setStrokeColorRGB(*SILVER)
    c.setLineWidth(2)
    c.line(0, page_h - 3*cm, page_w, page_h - 3*cm)
    c.setLineWidth(1)
    c.setStrokeColorRGB(0, 0, 0)


def _draw_footer(c, page_w, page_num: int, footer_text: str):
    c.setFillColorRGB(0.5, 0.5, 0.5)
    c.setFont("Helvetica", 7)
    c.drawString(1.5*cm, 0.8*cm, footer_text)
    c.drawRightString(page_w - 1.5*cm, 0.8*cm, f"Page {page_num}")
    c.setStrokeColorRGB(0.7, 0.7, 0.7)
    c.line(1.5*cm, 1.2*cm, page_w - 1.5*cm, 1.2*cm)


class ReportEngine:

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        s = settings or {}
        self.company_name = s.get("company_name", DEFAULT_COMPANY_NAME)
        self.company_sub = s.get("report_header_text", DEFAULT_COMPANY_SUB)
        self.theme_rgb = _hex_to_rgb(s.get("theme_color_hex", "#0f172a"))
        self.footer_text = s.get("report_footer_text", "AI-generated findings. Verify against the adopted SBC edition.")

    def render_pdf(self, package: ExportPackage, path: str) -> str:
        """Write the export PDF to ``path``. Raises ExportError on any failure."""
        pagesize = landscape(A4) if package.options.orientation == "landscape" else portrait(A4)
        c = rl_canvas.Canvas(path, pagesize=pagesize)
        try:
            self._render(c, package, *pagesize)
            c.save()
        except Exception as e:
            logger.error(f"PDF render failed for {path}: {e}")
            if os.path.exists(path):
                os.remove(path)
            raise ExportError(str(e)) from e
        return path

    # ── Pages ─────────────────────────────────────────────────────────────────

    def _new_page(self, c, page_w, page_h, first: bool = False) -> float:
        if not first:
            c.showPage()
        _draw_header(c, page_w, page_h, self.company_name, self.company_sub, self.theme_rgb)
        _draw_footer(c, page_w, c.getPageNumber(), self.footer_text)
        return page_h - CONTENT_TOP_OFFSET

    def _ensure_space(self, c, y, needed, page_w, page_h) -> float:
        if y - needed < BOTTOM_MARGIN:
            return self._new_page(c, page_w, page_h)
        return y

    def _section_title(self, c, y, title, page_w) -> float:
        c.setFont("Helvetica-Bold", 11)
        c.setFillColorRGB(*DARK)
        c.drawString(1.5*cm, y, title)
        y -= 0.4*cm
        c.setStrokeColorRGB(*SILVER)
        c.line(1.5*cm, y, page_w - 1.5*cm, y)
        return y - 0.6*cm

    def _render(self, c, package: ExportPackage, page_w, page_h):
        report = package.report
        y = self._new_page(c, page_w, page_h, first=True)

        c.setFillColorRGB(*DARK)
        c.setFont("Helvetica-Bold", 18)
        c.drawString(1.5*cm, y, "COMPLIANCE REPORT")
        y -= 0.7*cm
        c.setFont("Helvetica", 9)
        c.setFillColorRGB(*MUTED)
        c.drawString(
            1.5*cm, y,
            f"Drawing: {report.file_name or 'untitled'}  |  Scanned: {report.scan_date[:10]}  |  "
            f"Generated: {datetime.now().strftime('%d %b %Y')}",
        )
        y -= 1.2*cm

        if package.options.include_summary:
            y = self._draw_summary(c, y, package, page_w, page_h)
        if package.options.include_charts:
            y = self._draw_breakdown(c, y, package, page_w, page_h)
        if package.options.include_bounding_boxes and report.image_base64:
            y = self._draw_drawing(c, y, package, page_w, page_h)
        self._draw_findings(c, y, package, page_w, page_h)

    def _draw_summary(self, c, y, package: ExportPackage, page_w, page_h) -> float:
        report = package.report
        y = self._section_title(c, y, "EXECUTIVE SUMMARY", page_w)
        c.setFont("Helvetica-Bold", 22)
        c.setFillColorRGB(*DARK)
        c.drawString(1.5*cm, y - 0.4*cm, f"{report.overall_score:g}/100")
        c.setFont("Helvetica", 8)
        c.setFillColorRGB(*MUTED)
        c.drawString(1.5*cm, y - 0.9*cm, "OVERALL SCORE")

        c.setFont("Helvetica", 9)
        c.setFillColorRGB(*TEXT)
        lines = simpleSplit(report.summary or "", "Helvetica", 9, page_w - 8.5*cm)
        ty = y
        for line in lines:
            ty = self._ensure_space(c, ty, 0.45*cm, page_w, page_h)
            c.drawString(6.5*cm, ty, line)
            ty -= 0.45*cm
        return min(ty, y - 1.4*cm) - 0.6*cm

    def _draw_breakdown(self, c, y, package: ExportPackage, page_w, page_h) -> float:
        y = self._ensure_space(c, y, 4*cm, page_w, page_h)
        y = self._section_title(c, y, "STATUS BREAKDOWN", page_w)
        counts = status_breakdown(package.findings)
        total = max(sum(counts.values()), 1)
        bar_max = page_w - 9*cm
        c.setFont("Helvetica", 9)
        for status, count in counts.items():
            c.setFillColorRGB(*TEXT)
            c.drawString(1.5*cm, y, status.replace("_", " ").title())
            c.setFillColorRGB(*_hex_to_rgb(status_color(status)))
            c.rect(6*cm, y - 0.05*cm, bar_max * count / total, 0.35*cm, fill=1, stroke=0)
            c.setFillColorRGB(*DARK)
            c.drawRightString(page_w - 1.5*cm, y, str(count))
            y -= 0.55*cm
        return y - 0.6*cm

    def _draw_drawing(self, c, y, package: ExportPackage, page_w, page_h) -> float:
        report = package.report
        try:
            img = ImageReader(io.BytesIO(base64.b64decode(report.image_base64)))
            iw, ih = img.getSize()
        except Exception as e:  # ImageReader re-raises PIL errors with varying types
            logger.warning(f"Drawing image skipped in export: {e}")
            return y

        max_w = page_w - 3*cm
        max_h = min(page_h * 0.45, page_h - CONTENT_TOP_OFFSET - BOTTOM_MARGIN - 1.5*cm)
        scale = min(max_w / iw, max_h / ih)
        w, h = iw * scale, ih * scale

        y = self._ensure_space(c, y, h + 1.5*cm, page_w, page_h)
        y = self._section_title(c, y, "DRAWING: FINDING LOCATIONS", page_w)
        x0, y0 = 1.5*cm, y - h
        c.drawImage(img, x0, y0, width=w, height=h)

        c.setLineWidth(1.2)
        for f in package.findings:
            box = valid_box(f.bounding_box)
            if box is None:
                continue
            c.setStrokeColorRGB(*_hex_to_rgb(status_color(f.status.value)))
            # PDF origin is bottom-left; box coordinates are top-left based
            c.rect(
                x0 + box.xmin * w,
                y0 + (1 - box.ymax) * h,
                (box.xmax - box.xmin) * w,
                (box.ymax - box.ymin) * h,
                fill=0, stroke=1,
            )
        c.setLineWidth(1)
        c.setStrokeColorRGB(0, 0, 0)
        return y0 - 1*cm

    def _draw_findings(self, c, y, package: ExportPackage, page_w, page_h) -> float:
        y = self._ensure_space(c, y, 2*cm, page_w, page_h)
        y = self._section_title(c, y, f"FINDINGS ({len(package.findings)})", page_w)
        if not package.findings:
            c.setFont("Helvetica-Oblique", 9)
            c.setFillColorRGB(*MUTED)
            c.drawString(1.5*cm, y, "No findings match the selected categories.")
            return y - 0.6*cm

        text_w = page_w - 5.5*cm
        grouped = group_by_category(package.findings)
        for cat in grouped.categories:
            y = self._ensure_space(c, y, 1.5*cm, page_w, page_h)
            c.setFont("Helvetica-Bold", 10)
            c.setFillColorRGB(*DARK)
            c.drawString(1.5*cm, y, cat)
            y -= 0.55*cm
            for f in grouped.groups[cat]:
                lines = simpleSplit(f.description, "Helvetica", 9, text_w)
                if f.recommendation:
                    lines += simpleSplit(f"Recommendation: {f.recommendation}", "Helvetica", 9, text_w)
                y = self._ensure_space(c, y, 0.45*cm * (len(lines) + 1), page_w, page_h)

                c.setFont("Helvetica-Bold", 8)
                c.setFillColorRGB(*_hex_to_rgb(status_color(f.status.value)))
                c.drawString(2*cm, y, f.status.value.replace("_", " "))
                c.setFillColorRGB(*MUTED)
                c.drawRightString(page_w - 1.5*cm, y, f.reference or "")
                y -= 0.45*cm

                c.setFont("Helvetica", 9)
                c.setFillColorRGB(*TEXT)
                for line in lines:
                    c.drawString(4*cm, y, line)
                    y -= 0.45*cm
                y -= 0.2*cm
        return y
