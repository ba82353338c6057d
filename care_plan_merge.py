"""Merge the three care plan sections into a template PDF.

Three strategies share one ``apply(template, sections) -> MergeResult``
contract and are picked once per template from its profile:

* ``FieldFill`` sets named AcroForm text fields.
* ``ByteSubstitute`` overwrites fixed-length placeholders in raw content streams.
* ``AnnotateLayout`` draws wrapped text (over optional white masks) onto pages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

import requests

from field_fill import fill_form_bytes, has_fields
from placeholder_patch import (
    MISSING_ERROR,
    PlaceholderSpec,
    TruncationEvent,
    count_pages,
    locate,
    patch_placeholders,
    revalidate_pdf,
)
from plan_config import OUTPUT_FILENAME, Settings, TemplateProfile, load_profile
from plan_errors import (
    CarePlanError,
    MergeFailedError,
    StrategyUnavailableError,
    TemplateFetchError,
    ValidationError,
)
from section_text import normalize_sections
from text_layout import AnnotationBox, annotate_pages


@dataclass
class MergeResult:
    data: bytes
    strategy: str
    page_count: int
    truncations: list[TruncationEvent] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    filename: str = OUTPUT_FILENAME


@dataclass(frozen=True)
class FieldFill:
    name: ClassVar[str] = "field-fill"
    field_names: dict[str, str]

    def supports(self, template: bytes) -> bool:
        return has_fields(template, list(self.field_names.values()))

    def apply(self, template: bytes, sections: dict[str, str]) -> MergeResult:
        values = {field_name: sections.get(section, "") for section, field_name in self.field_names.items()}
        data = fill_form_bytes(template, values)
        page_count = revalidate_pdf(data, expected_pages=count_pages(template))
        return MergeResult(data, self.name, page_count)


@dataclass(frozen=True)
class ByteSubstitute:
    name: ClassVar[str] = "byte-substitute"
    placeholders: tuple[PlaceholderSpec, ...]
    on_missing: str = MISSING_ERROR

    def supports(self, template: bytes) -> bool:
        return any(next(locate(template, spec.pattern), None) is not None for spec in self.placeholders)

    def apply(self, template: bytes, sections: dict[str, str]) -> MergeResult:
        expected_pages = count_pages(template)
        outcome = patch_placeholders(template, list(self.placeholders), sections, on_missing=self.on_missing)
        page_count = revalidate_pdf(
            outcome.data, expected_pages=expected_pages, expected_length=len(template), baseline=template
        )
        return MergeResult(outcome.data, self.name, page_count, outcome.truncations, outcome.warnings)


@dataclass(frozen=True)
class AnnotateLayout:
    name: ClassVar[str] = "annotate-layout"
    boxes: tuple[AnnotationBox, ...]

    def supports(self, template: bytes) -> bool:
        return bool(self.boxes)

    def apply(self, template: bytes, sections: dict[str, str]) -> MergeResult:
        data, warnings = annotate_pages(template, list(self.boxes), sections)
        page_count = revalidate_pdf(data, expected_pages=count_pages(template))
        return MergeResult(data, self.name, page_count, warnings=warnings)


MergeStrategy = FieldFill | ByteSubstitute | AnnotateLayout

_PREFERENCE = ("field-fill", "byte-substitute", "annotate-layout")


def build_strategy(kind: str, profile: TemplateProfile, on_missing: str = MISSING_ERROR) -> MergeStrategy:
    if kind not in profile.capabilities:
        raise StrategyUnavailableError(
            f"Profile '{profile.name}' does not declare '{kind}'. "
            f"Available: {', '.join(profile.capabilities) or 'none'}."
        )
    if kind == "field-fill":
        return FieldFill(dict(profile.field_names))
    if kind == "byte-substitute":
        return ByteSubstitute(tuple(profile.placeholders), on_missing=on_missing)
    if kind == "annotate-layout":
        return AnnotateLayout(tuple(profile.annotations))
    raise StrategyUnavailableError(f"Unknown merge strategy '{kind}'.")


def select_strategy(
    template: bytes,
    profile: TemplateProfile,
    forced: str | None = None,
    on_missing: str = MISSING_ERROR,
) -> MergeStrategy:
    """Pick the merge strategy for *template*.

    A forced strategy is returned as-is so its own lookup errors surface.
    Otherwise the first declared capability the template actually supports wins.
    """
    if forced and forced != "auto":
        return build_strategy(forced, profile, on_missing)

    for kind in _PREFERENCE:
        if kind not in profile.capabilities:
            continue
        strategy = build_strategy(kind, profile, on_missing)
        if strategy.supports(template):
            print(f"[OK] Selected merge strategy: {kind}")
            return strategy
    raise StrategyUnavailableError(
        f"Template does not support any strategy declared by profile '{profile.name}' "
        f"({', '.join(profile.capabilities)})."
    )


def load_template(source: str, timeout: float = 30.0) -> bytes:
    """Read template bytes from a path or an http(s) URL. Every call returns a fresh copy."""
    if source.startswith(("http://", "https://")):
        try:
            response = requests.get(source, timeout=timeout)
        except requests.RequestException as exc:
            raise TemplateFetchError(source, str(exc)) from exc
        if not response.ok:
            raise TemplateFetchError(source, response.reason or "request failed", status=response.status_code)
        data = bytes(response.content)
    else:
        try:
            data = Path(source).read_bytes()
        except OSError as exc:
            raise TemplateFetchError(source, exc.strerror or str(exc)) from exc
    print(f"[OK] Template loaded: {source} ({len(data)} bytes)")
    return data


def merge_care_plan(template: bytes, sections: dict[str, str], strategy: MergeStrategy) -> MergeResult:
    """Run one merge to completion, consolidating engine failures into ``MergeFailedError``."""
    try:
        result = strategy.apply(template, sections)
    except ValidationError:
        raise
    except CarePlanError as exc:
        raise MergeFailedError(f"Failed to update the care plan: {exc.detail}", hint=exc.hint) from exc
    print(f"[OK] Care plan merged with {result.strategy} ({result.page_count} pages, {len(result.data)} bytes)")
    return result


def run_merge(
    sections: dict[str, str | None],
    settings: Settings,
    profile: TemplateProfile | None = None,
    template: bytes | None = None,
) -> MergeResult:
    """Validate, load, select, and merge: the full pipeline behind the CLI and HTTP service.

    ``ValidationError`` is raised before anything is loaded. Every later
    failure arrives as ``MergeFailedError`` with the original error as its cause.
    """
    texts = normalize_sections(sections, settings.max_chars)
    try:
        profile = profile or load_profile(settings.profile)
        if template is None:
            template = load_template(settings.template_source(profile), settings.fetch_timeout)
        strategy = select_strategy(template, profile, settings.strategy, settings.missing_placeholder)
    except CarePlanError as exc:
        raise MergeFailedError(f"Failed to update the care plan: {exc.detail}", hint=exc.hint) from exc
    return merge_care_plan(template, texts, strategy)
