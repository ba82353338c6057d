import pytest

from plan_errors import ValidationError
from section_text import (
    MAX_CHARS,
    Section,
    length_report,
    missing_sections,
    normalize,
    normalize_sections,
)


def test_normalize_accepts_text_at_the_limit() -> None:
    text = "x" * MAX_CHARS
    assert normalize(text) == text


def test_normalize_reports_exact_overage() -> None:
    with pytest.raises(ValidationError) as info:
        normalize("x" * (MAX_CHARS + 7), name="beliefs")

    assert info.value.overages == {"beliefs": 7}
    assert info.value.max_chars == MAX_CHARS
    assert "Beliefs: 7 characters over the limit" in str(info.value)


def test_normalize_pads_to_fixed_length_without_truncating() -> None:
    padded = normalize("hello", 10, pad=True)
    assert padded == "hello     "
    assert normalize("", 4, pad=True) == "    "


def test_normalize_sections_reports_every_offending_section() -> None:
    sections = {
        "beliefs": "ok",
        "values": "v" * (MAX_CHARS + 1),
        "wishes": "w" * (MAX_CHARS + 30),
    }
    with pytest.raises(ValidationError) as info:
        normalize_sections(sections)

    assert info.value.overages == {"values": 1, "wishes": 30}
    message = str(info.value)
    assert "Values: 1 characters over the limit" in message
    assert "Wishes: 30 characters over the limit" in message
    assert f"Maximum allowed: {MAX_CHARS} characters per section." in message


def test_normalize_sections_fills_missing_with_empty_strings() -> None:
    assert normalize_sections({"beliefs": "b", "values": None}) == {
        "beliefs": "b",
        "values": "",
        "wishes": "",
    }


def test_normalize_sections_rejects_unknown_section() -> None:
    with pytest.raises(ValueError):
        normalize_sections({"hopes": "x"})


def test_section_overage_and_length_report() -> None:
    assert Section("beliefs", "abc", 2).overage == 1
    assert Section("beliefs", "ab", 2).overage == 0

    report = length_report({"beliefs": "abc", "values": "", "wishes": "a"}, max_chars=2)
    assert report["beliefs"] == {"length": 3, "max_chars": 2, "remaining": 0, "over": 1}
    assert report["wishes"]["remaining"] == 1


def test_missing_sections_treats_whitespace_as_empty() -> None:
    assert missing_sections({"beliefs": "  ", "values": "v"}) == ["beliefs", "wishes"]
