import io

import pytest
from pypdf import PdfReader
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from plan_errors import ProfileError
from text_layout import (
    AnnotationBox,
    MaskRect,
    annotate_pages,
    font_measure,
    layout_lines,
    line_positions,
    resolve_font_name,
)
from tests.pdf_builders import plain_pdf, sample_text


def test_wraps_after_the_last_word_that_fits() -> None:
    lines = list(layout_lines("the quick brown fox", len("the quick"), len))
    assert lines == ["the quick", "brown fox"]


def test_empty_text_produces_no_lines() -> None:
    assert list(layout_lines("", 100, len)) == []
    assert list(layout_lines("   \n ", 100, len)) == []


def test_overwide_word_is_kept_whole_on_its_own_line() -> None:
    assert list(layout_lines("incomprehensibilities", 5, len)) == ["incomprehensibilities"]
    assert list(layout_lines("a incomprehensibilities b", 5, len)) == ["a", "incomprehensibilities", "b"]


def test_layout_is_restartable() -> None:
    text = sample_text(400)
    measure = font_measure("Helvetica", 10)
    assert list(layout_lines(text, 200, measure)) == list(layout_lines(text, 200, measure))


def test_lines_fit_the_measured_width() -> None:
    measure = font_measure("Helvetica", 10)
    lines = list(layout_lines(sample_text(1262), 472, measure))
    assert len(lines) > 1
    assert all(measure(line) <= 472 for line in lines)
    assert " ".join(lines) == " ".join(sample_text(1262).split())


def test_line_positions_step_down_by_line_height() -> None:
    placed = list(line_positions(["one", "two", "three"], 70, 542, 12))
    assert placed == [("one", 70, 542), ("two", 70, 530), ("three", 70, 518)]


def test_unknown_font_falls_back_to_helvetica() -> None:
    assert resolve_font_name("NoSuchFont") == "Helvetica"
    assert resolve_font_name("Times-Roman") == "Times-Roman"


def test_mask_rect_defaults_to_symmetric_margins() -> None:
    mask = MaskRect(x=50, top=200, width=None, height=500)
    assert mask.bottom_left(612, 792) == (50, 92, 512, 500)


def test_annotate_pages_draws_section_text_on_target_pages() -> None:
    template = plain_pdf(pages=3)
    boxes = [
        AnnotationBox("beliefs", page=1, mask=MaskRect(50, 200, None, 500)),
        AnnotationBox("values", page=2, top=250),
        AnnotationBox("wishes", page=2, top=550),
    ]
    sections = {
        "beliefs": "Faith gives my life meaning",
        "values": "Family time matters",
        "wishes": "Comfort care at home",
    }

    data, warnings = annotate_pages(template, boxes, sections)

    reader = PdfReader(io.BytesIO(data))
    assert len(reader.pages) == 3
    assert "Faith gives my life meaning" in reader.pages[1].extract_text()
    page_three = reader.pages[2].extract_text()
    assert "Family time matters" in page_three
    assert "Comfort care at home" in page_three
    assert "Faith" not in reader.pages[0].extract_text()
    assert warnings == []


def test_annotate_pages_warns_when_text_overflows_the_mask() -> None:
    template = plain_pdf(pages=1)
    boxes = [AnnotationBox("beliefs", page=0, top=250, mask=MaskRect(50, 200, None, 24))]

    _, warnings = annotate_pages(template, boxes, {"beliefs": sample_text(1262)})

    assert len(warnings) == 1
    assert "beliefs" in warnings[0]


def test_annotate_pages_rejects_out_of_range_page() -> None:
    with pytest.raises(ProfileError):
        annotate_pages(plain_pdf(pages=2), [AnnotationBox("beliefs", page=5)], {"beliefs": "x"})


def test_annotate_pages_keeps_the_template_outline() -> None:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for page in range(2):
        c.bookmarkPage(f"p{page}")
        c.addOutlineEntry(f"Chapter {page + 1}", f"p{page}", level=0)
        c.drawString(72, 600, f"Guide page {page + 1}")
        c.showPage()
    c.save()

    data, _ = annotate_pages(buf.getvalue(), [AnnotationBox("wishes", page=1)], {"wishes": "Comfort care"})

    reader = PdfReader(io.BytesIO(data))
    assert [entry.title for entry in reader.outline] == ["Chapter 1", "Chapter 2"]
    assert "Comfort care" in reader.pages[1].extract_text()
