"""Inspect a template and calibrate profile coordinates."""

from __future__ import annotations

import io
from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from field_fill import list_fields
from placeholder_patch import locate
from plan_config import TemplateProfile
from plan_errors import CorruptionError

SUGGESTED_TOPS = {"top": 150, "upper": 250, "middle": 400, "lower": 550}


def _open_fitz(template: bytes):
    try:
        import fitz
    except ImportError as exc:
        raise RuntimeError("PyMuPDF is required for span extraction. Install pymupdf.") from exc
    return fitz, fitz.open(stream=template, filetype="pdf")


def to_bottom_left_bbox(bbox: list[float], page_h: float) -> list[float]:
    x0, y0, x1, y1 = bbox
    return [x0, page_h - y1, x1, page_h - y0]


def suggest_rows(page_height: float) -> dict[str, float]:
    """Baseline candidates (bottom-left y) for placing section text."""
    return {label: round(page_height - top) for label, top in SUGGESTED_TOPS.items()}


def placeholder_pages(reader: PdfReader, pattern: bytes) -> list[int]:
    pages = []
    for index, page in enumerate(reader.pages):
        contents = page.get_contents()
        if contents is not None and pattern in contents.get_data():
            pages.append(index)
    return pages


def inspect_template(template: bytes, profile: TemplateProfile | None = None) -> dict:
    try:
        reader = PdfReader(io.BytesIO(template))
        pages = list(reader.pages)
    except (PyPdfError, ValueError, KeyError) as exc:
        raise CorruptionError(f"Template failed to parse: {exc}") from exc

    report: dict = {
        "size_bytes": len(template),
        "page_count": len(pages),
        "page_sizes": [[float(p.mediabox.width), float(p.mediabox.height)] for p in pages],
        "fields": list_fields(reader),
    }
    if profile is None:
        return report

    report["profile"] = profile.name
    report["capabilities"] = profile.capabilities
    report["missing_fields"] = [
        name for name in profile.field_names.values() if name not in report["fields"]
    ]
    report["placeholders"] = {
        spec.section: {
            "length": spec.length,
            "offsets": list(locate(template, spec.pattern)),
            "pages": placeholder_pages(reader, spec.pattern),
        }
        for spec in profile.placeholders
    }
    report["annotations"] = {}
    for box in profile.annotations:
        entry: dict = {"page": box.page, "in_range": 0 <= box.page < len(pages)}
        if entry["in_range"]:
            page_h = float(pages[box.page].mediabox.height)
            entry["baseline_y"] = page_h - box.top
            entry["suggested_rows"] = suggest_rows(page_h)
        report["annotations"][box.section] = entry
    return report


def find_text_spans(
    template: bytes,
    page_index: int,
    contains: str | None = None,
    min_len: int = 1,
    max_items: int = 0,
) -> list[dict]:
    fitz, doc = _open_fitz(template)
    if page_index < 0 or page_index >= len(doc):
        raise IndexError(f"Page {page_index} out of range. PDF has {len(doc)} page(s).")

    page = doc[page_index]
    page_h = float(page.rect.height)
    needle = contains.lower() if contains else None

    items: list[dict] = []
    data = page.get_text("dict")
    for block in data.get("blocks", []):
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = (span.get("text") or "").strip()
                if len(text) < min_len:
                    continue
                if needle and needle not in text.lower():
                    continue
                bbox_top_left = list(span.get("bbox", [0, 0, 0, 0]))
                items.append(
                    {
                        "text": text,
                        "font": span.get("font"),
                        "size": span.get("size"),
                        "bbox_top_left": bbox_top_left,
                        "bbox_bottom_left": to_bottom_left_bbox(bbox_top_left, page_h),
                    }
                )
                if max_items and len(items) >= max_items:
                    return items
    return items


def annotate_boxes(template: bytes, profile: TemplateProfile, output_path: Path) -> Path:
    """Write a calibration copy of *template* outlining each annotation box and mask."""
    fitz, doc = _open_fitz(template)
    for box in profile.annotations:
        if box.page < 0 or box.page >= len(doc):
            print(f"[WARN] '{box.section}' targets page {box.page}; template has {len(doc)} page(s).")
            continue
        page = doc[box.page]
        page_w = float(page.rect.width)
        if box.mask is not None:
            x, _, w, _ = box.mask.bottom_left(page_w, float(page.rect.height))
            mask_rect = fitz.Rect(x, box.mask.top, x + w, box.mask.top + box.mask.height)
            page.draw_rect(mask_rect, color=(1, 0, 0), width=0.7)
        text_rect = fitz.Rect(box.x, box.top - box.size, box.x + box.wrap_width(page_w), box.top)
        page.draw_rect(text_rect, color=(0, 0, 1), width=0.7)
        page.insert_text(text_rect.tl + fitz.Point(0, -2), box.section, fontsize=7, color=(0, 0, 1))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    doc.save(str(output_path))
    print(f"Wrote annotated PDF: {output_path}")
    return output_path
