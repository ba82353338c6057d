"""Runtime settings and template profiles.

A profile is the fixed contract between a template file and the merge engine:
which form fields, placeholder tokens, or page boxes the template provides.
Profiles are plain dicts so they can live in JSON files next to a template.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from placeholder_patch import MISSING_ERROR, MISSING_WARN, PlaceholderSpec
from plan_errors import ProfileError
from section_text import MAX_CHARS, SECTION_NAMES
from text_layout import AnnotationBox, MaskRect

ROOT_DIR = Path(__file__).resolve().parent
OUTPUT_FILENAME = "my-advanced-care-plan.pdf"
STRATEGY_CHOICES = ("auto", "field-fill", "byte-substitute", "annotate-layout")
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")

DEFAULT_PROFILES: dict[str, dict] = {
    "fillable": {
        "template": "myvoice-advancecareplanningguide-fillable.pdf",
        "field_names": {
            "beliefs": "MyBeliefsTxt",
            "values": "MyValuesTxt",
            "wishes": "MyWishesTxt",
        },
    },
    "editing": {
        "template": "myvoice-advancecareplanningguideForEditing.pdf",
        "placeholders": {
            "beliefs": {"token": "a" * MAX_CHARS, "length": MAX_CHARS},
            "values": {"token": "b" * MAX_CHARS, "length": MAX_CHARS},
            "wishes": {"token": "c" * MAX_CHARS, "length": MAX_CHARS},
        },
    },
    "overlay": {
        "template": "myvoice-advancecareplanningguide.pdf",
        "annotations": {
            "beliefs": {"page": 32, "x": 70, "top": 250, "mask": {"x": 50, "top": 200, "height": 500}},
            "values": {"page": 33, "x": 70, "top": 250, "mask": {"x": 50, "top": 50, "height": 692}},
            "wishes": {"page": 33, "x": 70, "top": 550},
        },
    },
}


@dataclass(frozen=True)
class TemplateProfile:
    name: str
    template: str | None = None
    field_names: dict[str, str] = field(default_factory=dict)
    placeholders: list[PlaceholderSpec] = field(default_factory=list)
    annotations: list[AnnotationBox] = field(default_factory=list)

    @property
    def capabilities(self) -> list[str]:
        caps = []
        if self.field_names:
            caps.append("field-fill")
        if self.placeholders:
            caps.append("byte-substitute")
        if self.annotations:
            caps.append("annotate-layout")
        return caps


def _check_sections(name: str, key: str, mapping: dict) -> None:
    if not isinstance(mapping, dict):
        raise ProfileError(f"Profile '{name}': '{key}' must be an object keyed by section.")
    unknown = sorted(set(mapping) - set(SECTION_NAMES))
    if unknown:
        raise ProfileError(f"Profile '{name}': unknown section(s) in '{key}': {', '.join(unknown)}.")


def _placeholder_from_dict(name: str, section: str, raw: dict) -> PlaceholderSpec:
    token = raw.get("token")
    if not isinstance(token, str) or not token:
        raise ProfileError(f"Profile '{name}': placeholder for '{section}' needs a non-empty 'token'.")
    try:
        return PlaceholderSpec(section, token.encode("latin-1"), int(raw.get("length", 0)))
    except (ValueError, UnicodeEncodeError) as exc:
        raise ProfileError(f"Profile '{name}': {exc}") from exc


def _annotation_from_dict(name: str, section: str, raw: dict) -> AnnotationBox:
    if "page" not in raw:
        raise ProfileError(f"Profile '{name}': annotation for '{section}' needs a 'page'.")
    mask = None
    raw_mask = raw.get("mask")
    try:
        if raw_mask:
            mask = MaskRect(
                x=float(raw_mask.get("x", 50)),
                top=float(raw_mask["top"]),
                width=float(raw_mask["width"]) if raw_mask.get("width") is not None else None,
                height=float(raw_mask["height"]),
            )
        return AnnotationBox(
            section=section,
            page=int(raw["page"]),
            x=float(raw.get("x", 70)),
            top=float(raw.get("top", 250)),
            max_width=float(raw["max_width"]) if raw.get("max_width") is not None else None,
            font=str(raw.get("font", "Helvetica")),
            size=float(raw.get("size", 10)),
            line_height=float(raw.get("line_height", 12)),
            mask=mask,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ProfileError(f"Profile '{name}': invalid annotation for '{section}': {exc}") from exc


def profile_from_dict(name: str, data: dict) -> TemplateProfile:
    if not isinstance(data, dict):
        raise ProfileError(f"Profile '{name}' must be a JSON object.")

    field_names = data.get("field_names") or {}
    placeholders = data.get("placeholders") or {}
    annotations = data.get("annotations") or {}
    _check_sections(name, "field_names", field_names)
    _check_sections(name, "placeholders", placeholders)
    _check_sections(name, "annotations", annotations)

    profile = TemplateProfile(
        name=name,
        template=data.get("template"),
        field_names={section: str(value) for section, value in field_names.items()},
        placeholders=[_placeholder_from_dict(name, s, raw) for s, raw in placeholders.items()],
        annotations=[_annotation_from_dict(name, s, raw) for s, raw in annotations.items()],
    )
    if not profile.capabilities:
        raise ProfileError(f"Profile '{name}' declares no field names, placeholders, or annotations.")
    return profile


def load_profile(name_or_path: str | None) -> TemplateProfile:
    """Resolve a built-in profile name or a path to a profile JSON file."""
    key = name_or_path or "fillable"
    if key in DEFAULT_PROFILES:
        return profile_from_dict(key, DEFAULT_PROFILES[key])

    path = Path(key)
    if not path.exists():
        choices = ", ".join(DEFAULT_PROFILES)
        raise ProfileError(f"Unknown profile '{key}'. Use one of: {choices}, or a JSON file path.")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ProfileError(f"Invalid JSON in {path.name}: {exc}") from exc
    return profile_from_dict(path.stem, data)


def profile_from_json(text: str, name: str = "uploaded") -> TemplateProfile:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProfileError(f"Invalid profile JSON: {exc}") from exc
    return profile_from_dict(name, data)


@dataclass(frozen=True)
class Settings:
    profile: str = "fillable"
    template: str | None = None
    template_dir: Path = ROOT_DIR
    strategy: str = "auto"
    missing_placeholder: str = MISSING_ERROR
    max_chars: int = MAX_CHARS
    fetch_timeout: float = 30.0
    jwt_secret: str = ""
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS

    def template_source(self, profile: TemplateProfile) -> str:
        if self.template:
            return self.template
        if not profile.template:
            raise ProfileError(f"Profile '{profile.name}' names no template; set CARE_PLAN_TEMPLATE.")
        return str(self.template_dir / profile.template)


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    strategy = env.get("CARE_PLAN_STRATEGY", "auto").strip().lower() or "auto"
    if strategy not in STRATEGY_CHOICES:
        raise ProfileError(f"CARE_PLAN_STRATEGY must be one of {', '.join(STRATEGY_CHOICES)}; got '{strategy}'.")

    missing = env.get("CARE_PLAN_MISSING_PLACEHOLDER", MISSING_ERROR).strip().lower() or MISSING_ERROR
    if missing not in (MISSING_ERROR, MISSING_WARN):
        raise ProfileError(f"CARE_PLAN_MISSING_PLACEHOLDER must be 'error' or 'warn'; got '{missing}'.")

    origins = env.get("CARE_PLAN_CORS_ORIGINS", "")
    try:
        max_chars = int(env.get("CARE_PLAN_MAX_CHARS", MAX_CHARS))
        timeout = float(env.get("CARE_PLAN_FETCH_TIMEOUT", 30))
    except ValueError as exc:
        raise ProfileError(f"Invalid numeric setting: {exc}") from exc

    return Settings(
        profile=env.get("CARE_PLAN_PROFILE", "fillable") or "fillable",
        template=env.get("CARE_PLAN_TEMPLATE") or None,
        template_dir=Path(env.get("CARE_PLAN_TEMPLATE_DIR") or ROOT_DIR),
        strategy=strategy,
        missing_placeholder=missing,
        max_chars=max_chars,
        fetch_timeout=timeout,
        jwt_secret=env.get("CARE_PLAN_JWT_SECRET", ""),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) or DEFAULT_CORS_ORIGINS,
    )
