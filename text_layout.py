from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Callable, Iterator

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.colors import Color
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from plan_errors import CorruptionError, ProfileError

_BASE14_FONTS = {
    "Courier",
    "Courier-Bold",
    "Courier-Oblique",
    "Courier-BoldOblique",
    "Helvetica",
    "Helvetica-Bold",
    "Helvetica-Oblique",
    "Helvetica-BoldOblique",
    "Times-Roman",
    "Times-Bold",
    "Times-Italic",
    "Times-BoldItalic",
    "Symbol",
    "ZapfDingbats",
}

WHITE = (1.0, 1.0, 1.0)
BLACK = (0.0, 0.0, 0.0)


def resolve_font_name(font_name: str, fallback_font: str = "Helvetica") -> str:
    if font_name in _BASE14_FONTS or font_name in pdfmetrics.getRegisteredFontNames():
        return font_name
    print(f"[WARN] Font '{font_name}' is unavailable. Falling back to '{fallback_font}'.")
    return fallback_font


def font_measure(font_name: str, size: float) -> Callable[[str], float]:
    font_name = resolve_font_name(font_name)
    return lambda text: pdfmetrics.stringWidth(text, font_name, size)


def layout_lines(text: str, max_width: float, measure: Callable[[str], float]) -> Iterator[str]:
    """Greedy word-wrap of *text* into lines no wider than *max_width*.

    A word that is wider than *max_width* on its own is emitted as its own
    overflowing line instead of being split. Empty text yields no lines.
    """
    current = ""
    for word in (text or "").split():
        candidate = f"{current} {word}" if current else word
        if current and measure(candidate) > max_width:
            yield current
            current = word
        else:
            current = candidate
    if current:
        yield current


def line_positions(lines: list[str], x0: float, y0: float, line_height: float) -> Iterator[tuple[str, float, float]]:
    for i, line in enumerate(lines):
        yield line, x0, y0 - i * line_height


@dataclass(frozen=True)
class MaskRect:
    x: float
    top: float
    width: float | None
    height: float

    def bottom_left(self, page_w: float, page_h: float) -> tuple[float, float, float, float]:
        width = self.width if self.width is not None else page_w - 2 * self.x
        return self.x, page_h - self.top - self.height, width, self.height


@dataclass(frozen=True)
class AnnotationBox:
    """Where one section is drawn. ``top`` is measured down from the page top."""

    section: str
    page: int
    x: float = 70.0
    top: float = 250.0
    max_width: float | None = None
    font: str = "Helvetica"
    size: float = 10.0
    line_height: float = 12.0
    mask: MaskRect | None = None

    def wrap_width(self, page_w: float) -> float:
        # 50pt right margin unless the profile pins a width.
        if self.max_width is not None:
            return float(self.max_width)
        return page_w - self.x - 50.0


def draw_overlay(
    page_w: float,
    page_h: float,
    placements: list[tuple[AnnotationBox, str]],
) -> tuple[bytes, list[str]]:
    """Render masks and wrapped section text for one page onto a blank overlay."""
    packet = io.BytesIO()
    c = canvas.Canvas(packet, pagesize=(page_w, page_h))
    warnings: list[str] = []

    # All masks first so one section's mask never hides another's text.
    for box, _ in placements:
        if box.mask is None:
            continue
        x, y, w, h = box.mask.bottom_left(page_w, page_h)
        c.setFillColor(Color(*WHITE))
        c.rect(x, y, w, h, stroke=0, fill=1)

    for box, text in placements:
        font_name = resolve_font_name(box.font)
        measure = font_measure(font_name, box.size)
        lines = list(layout_lines(text, box.wrap_width(page_w), measure))
        bottom_limit = box.mask.bottom_left(page_w, page_h)[1] if box.mask else 0.0

        c.setFillColor(Color(*BLACK))
        c.setFont(font_name, box.size)
        for line, x, y in line_positions(lines, box.x, page_h - box.top, box.line_height):
            c.drawString(x, y, line)
        if lines:
            last_y = page_h - box.top - (len(lines) - 1) * box.line_height
            if last_y < bottom_limit:
                message = f"'{box.section}' runs past its box on page {box.page + 1} ({len(lines)} lines)."
                print(f"[WARN] {message}")
                warnings.append(message)

    c.showPage()
    c.save()
    packet.seek(0)
    return packet.read(), warnings


def annotate_pages(
    template: bytes,
    boxes: list[AnnotationBox],
    sections: dict[str, str],
) -> tuple[bytes, list[str]]:
    """Overlay each section's text onto its template page and serialize the result.

    The template is cloned into the writer first, so overlays merge onto
    writer-owned pages and the outline and catalog entries survive.
    """
    try:
        writer = PdfWriter(clone_from=PdfReader(io.BytesIO(template)))
        page_count = len(writer.pages)
    except (PyPdfError, ValueError, KeyError) as exc:
        raise CorruptionError(f"Template failed to parse: {exc}") from exc

    by_page: dict[int, list[tuple[AnnotationBox, str]]] = {}
    for box in boxes:
        if box.page < 0 or box.page >= page_count:
            raise ProfileError(
                f"Annotation for '{box.section}' targets page {box.page} but template has {page_count} page(s)."
            )
        by_page.setdefault(box.page, []).append((box, sections.get(box.section, "")))

    warnings: list[str] = []
    out = io.BytesIO()
    try:
        for i, placements in sorted(by_page.items()):
            page = writer.pages[i]
            page_w = float(page.mediabox.width)
            page_h = float(page.mediabox.height)
            overlay_bytes, page_warnings = draw_overlay(page_w, page_h, placements)
            warnings.extend(page_warnings)
            page.merge_page(PdfReader(io.BytesIO(overlay_bytes)).pages[0])
        writer.write(out)
    except (PyPdfError, ValueError, KeyError) as exc:
        raise CorruptionError(f"Failed to overlay section text: {exc}") from exc
    return out.getvalue(), warnings
