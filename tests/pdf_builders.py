"""Build small template PDFs in memory for the test suite."""

from __future__ import annotations

import io

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


def placeholder_pdf(runs: list[tuple[int, str]], pages: int = 3) -> bytes:
    """Template whose pages carry literal placeholder runs in uncompressed content streams."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter, pageCompression=0)
    for page in range(pages):
        c.setFont("Helvetica", 10)
        c.drawString(72, 740, f"Advance care planning guide - page {page + 1}")
        y = 600
        for run_page, text in runs:
            if run_page == page:
                c.drawString(72, y, text)
                y -= 150
        c.showPage()
    c.save()
    return buf.getvalue()


def form_pdf(field_names: list[str], pages: int = 2) -> bytes:
    """Template with one multiline AcroForm text field per name on the first page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for page in range(pages):
        c.setFont("Helvetica", 10)
        c.drawString(72, 740, f"Fillable guide - page {page + 1}")
        if page == 0:
            for i, name in enumerate(field_names):
                c.acroForm.textfield(
                    name=name,
                    x=72,
                    y=560 - i * 170,
                    width=450,
                    height=150,
                    fieldFlags="multiline",
                    maxlen=1262,
                )
        c.showPage()
    c.save()
    return buf.getvalue()


def plain_pdf(pages: int = 3, marker: str = "Original guide text") -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for page in range(pages):
        c.setFont("Helvetica", 12)
        c.drawString(72, 600, f"{marker} {page + 1}")
        c.showPage()
    c.save()
    return buf.getvalue()


def sample_text(length: int, seed: str = "I value time with family and clear conversations") -> str:
    words = (seed + " ") * (length // len(seed) + 2)
    return words[:length]
