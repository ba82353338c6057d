from __future__ import annotations

import io

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from plan_errors import CorruptionError, FieldNotFoundError

FIELD_TYPES = {"/Tx": "text", "/Btn": "button", "/Ch": "choice", "/Sig": "signature"}


def open_form(template: bytes) -> PdfWriter:
    """Clone *template* into a writer that owns its own object graph."""
    try:
        reader = PdfReader(io.BytesIO(template))
        return PdfWriter(clone_from=reader)
    except (PyPdfError, ValueError, KeyError) as exc:
        raise CorruptionError(f"Template failed to parse: {exc}") from exc


def _max_lengths(document: PdfReader | PdfWriter) -> dict[str, int]:
    # get_fields() drops /MaxLen, so read it off the widgets.
    lengths: dict[str, int] = {}
    for page in document.pages:
        for annot in page.get("/Annots") or []:
            widget = annot.get_object()
            node = widget if "/T" in widget else widget.get("/Parent")
            if node is None:
                continue
            node = node.get_object()
            if "/T" in node and "/MaxLen" in node:
                lengths[str(node["/T"])] = int(node["/MaxLen"])
    return lengths


def list_fields(document: PdfReader | PdfWriter) -> dict[str, dict]:
    """Return ``{name: {"type", "max_length", "value"}}`` for every form field."""
    fields = document.get_fields() or {}
    max_lengths = _max_lengths(document)
    listed: dict[str, dict] = {}
    for name, field in fields.items():
        value = field.get("/V")
        listed[name] = {
            "type": FIELD_TYPES.get(str(field.get("/FT", "")), "unknown"),
            "max_length": max_lengths.get(name),
            "value": str(value) if value is not None else None,
        }
    return listed


def has_fields(template: bytes, field_names: list[str]) -> bool:
    if not field_names:
        return False
    try:
        available = PdfReader(io.BytesIO(template)).get_fields() or {}
    except (PyPdfError, ValueError, KeyError):
        return False
    return all(name in available for name in field_names)


def fill_fields(document: PdfWriter, values: dict[str, str]) -> PdfWriter:
    """Set the text of each named field on *document* and return it.

    Every name must resolve; a missing field aborts before anything is written.
    Length policy belongs to the caller.
    """
    available = document.get_fields() or {}
    for field_name in values:
        if field_name not in available:
            raise FieldNotFoundError(field_name, sorted(available))

    for page in document.pages:
        if "/Annots" not in page:
            continue
        document.update_page_form_field_values(page, dict(values), auto_regenerate=False)
    document.set_need_appearances_writer(True)
    return document


def serialize(document: PdfWriter) -> bytes:
    buffer = io.BytesIO()
    document.write(buffer)
    return buffer.getvalue()


def fill_form_bytes(template: bytes, values: dict[str, str]) -> bytes:
    """Fill a fresh copy of *template* and serialize it straight away."""
    document = open_form(template)
    try:
        fill_fields(document, values)
        return serialize(document)
    except (PyPdfError, ValueError, KeyError) as exc:
        raise CorruptionError(f"Failed to fill form fields: {exc}") from exc


def read_field_values(data: bytes) -> dict[str, str]:
    reader = PdfReader(io.BytesIO(data))
    return {name: value for name, value in (reader.get_form_text_fields() or {}).items() if value is not None}
