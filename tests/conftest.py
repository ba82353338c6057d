"""Shared pytest fixtures for the merge engine tests."""

from __future__ import annotations

import pytest

from section_text import MAX_CHARS
from tests.pdf_builders import form_pdf, placeholder_pdf, plain_pdf

FIELD_NAMES = ["MyBeliefsTxt", "MyValuesTxt", "MyWishesTxt"]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "CARE_PLAN_TEMPLATE",
        "CARE_PLAN_TEMPLATE_DIR",
        "CARE_PLAN_PROFILE",
        "CARE_PLAN_STRATEGY",
        "CARE_PLAN_MISSING_PLACEHOLDER",
        "CARE_PLAN_MAX_CHARS",
        "CARE_PLAN_JWT_SECRET",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def editing_template() -> bytes:
    """Three pages; beliefs on page 1, values and wishes on page 2, as in the editing guide."""
    return placeholder_pdf(
        [(0, "a" * MAX_CHARS), (1, "b" * MAX_CHARS), (1, "c" * MAX_CHARS)],
        pages=3,
    )


@pytest.fixture
def fillable_template() -> bytes:
    return form_pdf(FIELD_NAMES)


@pytest.fixture
def plain_template() -> bytes:
    return plain_pdf(pages=3)
