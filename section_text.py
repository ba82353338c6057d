from __future__ import annotations

from dataclasses import dataclass

from plan_errors import ValidationError

MAX_CHARS = 1262
SECTION_NAMES = ("beliefs", "values", "wishes")

SECTION_TITLES = {
    "beliefs": "My beliefs (what gives my life meaning)",
    "values": "My values (what I care about in life)",
    "wishes": (
        "My wishes (for future health care treatment, life support and "
        "life-prolonging medical interventions)"
    ),
}


@dataclass(frozen=True)
class Section:
    name: str
    text: str
    max_chars: int = MAX_CHARS

    @property
    def overage(self) -> int:
        return max(0, len(self.text) - self.max_chars)


def normalize(text: str, max_chars: int = MAX_CHARS, pad: bool = False, name: str = "section") -> str:
    """Check *text* against *max_chars* and optionally right-pad it with spaces.

    Never truncates: text over the limit raises ``ValidationError`` with the
    exact overage so the user can edit it.
    """
    text = text or ""
    if len(text) > max_chars:
        raise ValidationError({name: len(text) - max_chars}, max_chars)
    if pad:
        return text.ljust(max_chars, " ")
    return text


def normalize_sections(
    sections: dict[str, str | None],
    max_chars: int = MAX_CHARS,
    pad: bool = False,
) -> dict[str, str]:
    """Validate all three sections at once so every overage is reported together."""
    unknown = sorted(set(sections) - set(SECTION_NAMES))
    if unknown:
        raise ValueError(f"Unknown section(s): {', '.join(unknown)}")

    texts = {name: str(sections.get(name) or "") for name in SECTION_NAMES}
    overages = {
        name: Section(name, text, max_chars).overage
        for name, text in texts.items()
        if len(text) > max_chars
    }
    if overages:
        raise ValidationError(overages, max_chars)
    return {name: normalize(text, max_chars, pad=pad, name=name) for name, text in texts.items()}


def missing_sections(sections: dict[str, str | None]) -> list[str]:
    return [name for name in SECTION_NAMES if not str(sections.get(name) or "").strip()]


def length_report(sections: dict[str, str | None], max_chars: int = MAX_CHARS) -> dict[str, dict[str, int]]:
    report: dict[str, dict[str, int]] = {}
    for name in SECTION_NAMES:
        section = Section(name, str(sections.get(name) or ""), max_chars)
        report[name] = {
            "length": len(section.text),
            "max_chars": max_chars,
            "remaining": max(0, max_chars - len(section.text)),
            "over": section.overage,
        }
    return report
