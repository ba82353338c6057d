"""Fixed-length placeholder patching for templates with uncompressed content streams.

A placeholder is a run of filler bytes inside a ``(...) Tj`` literal string.
Each run is overwritten byte-for-byte so the xref table and every stream
``/Length`` stay valid. Nothing is ever inserted or removed.
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from typing import Iterator, NamedTuple

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from plan_errors import (
    CorruptionError,
    PlaceholderNotFoundError,
    PlaceholderOverlapError,
)

TEXT_ENCODING = "cp1252"
PAD_BYTE = b" "
_LITERAL_SPECIALS = (b"\\", b"(", b")")
_CONTROL_CHARS = re.compile(r"\r\n|[\x00-\x1f\x7f]")
_PARSE_ERRORS = (PyPdfError, ValueError, KeyError)

MISSING_ERROR = "error"
MISSING_WARN = "warn"


@dataclass(frozen=True)
class PlaceholderSpec:
    section: str
    token: bytes
    length: int = 0

    def __post_init__(self) -> None:
        if not self.token:
            raise ValueError(f"Placeholder token for '{self.section}' is empty.")
        if self.length == 0:
            object.__setattr__(self, "length", len(self.token))
        if len(self.token) > self.length:
            raise ValueError(
                f"Placeholder token for '{self.section}' is {len(self.token)} bytes "
                f"but its fixed length is {self.length}."
            )

    @property
    def pattern(self) -> bytes:
        # Short markers sit at the start of a space-padded run.
        return self.token.ljust(self.length, PAD_BYTE)


@dataclass(frozen=True)
class TruncationEvent:
    section: str
    offset: int
    width: int
    kept_chars: int
    dropped_chars: int

    def describe(self) -> str:
        return (
            f"'{self.section}' truncated at byte {self.offset}: kept {self.kept_chars} "
            f"character(s), dropped {self.dropped_chars} to fit {self.width} bytes"
        )


@dataclass(frozen=True)
class Region:
    section: str
    offset: int
    width: int

    @property
    def end(self) -> int:
        return self.offset + self.width


class SubstitutionResult(NamedTuple):
    buffer: bytes
    truncation: TruncationEvent | None


@dataclass
class PatchOutcome:
    data: bytes
    regions: list[Region] = field(default_factory=list)
    truncations: list[TruncationEvent] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def locate(buffer: bytes, token: bytes) -> Iterator[int]:
    """Yield the offset of every non-overlapping occurrence of *token*, ascending."""
    if not token:
        raise ValueError("Cannot locate an empty token.")
    start = 0
    while True:
        offset = buffer.find(token, start)
        if offset < 0:
            return
        yield offset
        start = offset + len(token)


def encode_literal_text(text: str, width: int) -> tuple[bytes, int, int]:
    """Encode *text* as the body of a PDF literal string of exactly *width* bytes.

    Returns the payload with the counts of characters kept and dropped.
    Escapes are never split by truncation.
    """
    text = _CONTROL_CHARS.sub(" ", text or "")
    payload = bytearray()
    kept = 0
    for ch in text:
        raw = ch.encode(TEXT_ENCODING, errors="replace")
        piece = b"\\" + raw if raw in _LITERAL_SPECIALS else raw
        if len(payload) + len(piece) > width:
            break
        payload += piece
        kept += 1
    return bytes(payload.ljust(width, PAD_BYTE)), kept, len(text) - kept


def _write_region(target: bytearray, region: Region, replacement: str) -> TruncationEvent | None:
    payload, kept, dropped = encode_literal_text(replacement, region.width)
    if len(payload) != region.width:
        raise CorruptionError(
            f"Payload for '{region.section}' is {len(payload)} bytes, expected {region.width}."
        )
    target[region.offset:region.end] = payload
    if not dropped:
        return None
    event = TruncationEvent(
        section=region.section,
        offset=region.offset,
        width=region.width,
        kept_chars=kept,
        dropped_chars=dropped,
    )
    print(f"[WARN] {event.describe()}")
    return event


def substitute(
    buffer: bytes,
    offset: int,
    token: bytes,
    replacement: str,
    width: int | None = None,
    section: str = "section",
) -> SubstitutionResult:
    """Overwrite the placeholder at *offset* with *replacement*, keeping total length."""
    width = len(token) if width is None else width
    if width < len(token):
        raise ValueError(f"Width {width} is shorter than the {len(token)}-byte token.")
    if offset < 0 or offset + width > len(buffer):
        raise CorruptionError(f"Region {offset}..{offset + width} lies outside the {len(buffer)}-byte buffer.")
    if bytes(buffer[offset:offset + len(token)]) != token:
        raise CorruptionError(f"Bytes at offset {offset} do not match the '{section}' placeholder.")

    target = bytearray(buffer)
    event = _write_region(target, Region(section, offset, width), replacement)
    if len(target) != len(buffer):
        raise CorruptionError(f"Substitution changed buffer length from {len(buffer)} to {len(target)}.")
    return SubstitutionResult(bytes(target), event)


def plan_regions(
    buffer: bytes,
    specs: list[PlaceholderSpec],
    on_missing: str = MISSING_ERROR,
) -> tuple[list[Region], list[str]]:
    """Locate every declared placeholder in the unmodified buffer.

    Regions of different sections must not intersect.
    """
    regions: list[Region] = []
    warnings: list[str] = []
    for spec in specs:
        offsets = list(locate(buffer, spec.pattern))
        if not offsets:
            if on_missing != MISSING_WARN:
                raise PlaceholderNotFoundError(spec.section, spec.token)
            message = f"Placeholder for '{spec.section}' not found; section left unchanged."
            print(f"[WARN] {message}")
            warnings.append(message)
            continue
        regions.extend(Region(spec.section, offset, spec.length) for offset in offsets)

    regions.sort(key=lambda r: r.offset)
    for prev, cur in zip(regions, regions[1:]):
        if cur.offset < prev.end:
            raise PlaceholderOverlapError(prev.section, cur.section, cur.offset)
    return regions, warnings


def patch_placeholders(
    template: bytes,
    specs: list[PlaceholderSpec],
    sections: dict[str, str],
    on_missing: str = MISSING_ERROR,
) -> PatchOutcome:
    regions, warnings = plan_regions(template, specs, on_missing=on_missing)

    target = bytearray(template)
    truncations: list[TruncationEvent] = []
    for region in regions:
        event = _write_region(target, region, sections.get(region.section, ""))
        if event:
            truncations.append(event)

    if len(target) != len(template):
        raise CorruptionError(f"Patched buffer is {len(target)} bytes, template is {len(template)}.")
    return PatchOutcome(bytes(target), regions, truncations, warnings)


def _parse_pages(data: bytes, strict: bool) -> int:
    reader = PdfReader(io.BytesIO(data), strict=strict)
    for page in reader.pages:
        contents = page.get_contents()
        if contents is not None:
            contents.get_data()
    return len(reader.pages)


def strict_parse_error(data: bytes) -> Exception | None:
    """Return the error a strict parse of *data* raises, or ``None`` when it parses cleanly."""
    try:
        _parse_pages(data, strict=True)
    except _PARSE_ERRORS as exc:
        return exc
    return None


def revalidate_pdf(
    data: bytes,
    expected_pages: int | None = None,
    expected_length: int | None = None,
    baseline: bytes | None = None,
) -> int:
    """Re-parse *data* and return its page count.

    The parse is strict unless *baseline* (the unmodified template) itself
    fails a strict parse; then *data* is held to the same lenient reader the
    template needed. Raises ``CorruptionError`` rather than letting a broken
    document through.
    """
    if expected_length is not None and len(data) != expected_length:
        raise CorruptionError(f"Document is {len(data)} bytes, expected {expected_length}.")

    strict = True
    if baseline is not None:
        baseline_error = strict_parse_error(baseline)
        if baseline_error is not None:
            strict = False
            print(f"[WARN] Template only parses leniently ({baseline_error}); checking the merge the same way.")
    try:
        page_count = _parse_pages(data, strict=strict)
    except _PARSE_ERRORS as exc:
        raise CorruptionError(f"Merged document failed to parse: {exc}") from exc
    if expected_pages is not None and page_count != expected_pages:
        raise CorruptionError(f"Merged document has {page_count} page(s), template has {expected_pages}.")
    return page_count


def count_pages(data: bytes) -> int:
    try:
        return len(PdfReader(io.BytesIO(data)).pages)
    except _PARSE_ERRORS as exc:
        raise CorruptionError(f"Template failed to parse: {exc}") from exc
