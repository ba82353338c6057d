"""Exceptions raised by the care plan merge engine."""

from __future__ import annotations


class CarePlanError(RuntimeError):
    """Base class for every failure the merge engine reports."""

    def __init__(self, detail: str, hint: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.hint = hint


class ValidationError(CarePlanError):
    """One or more sections exceed the character limit."""

    def __init__(self, overages: dict[str, int], max_chars: int) -> None:
        lines = [f"{name.capitalize()}: {over} characters over the limit" for name, over in overages.items()]
        detail = (
            "Please shorten your input:\n\n"
            + "\n".join(lines)
            + f"\n\nMaximum allowed: {max_chars} characters per section."
        )
        super().__init__(detail)
        self.overages = dict(overages)
        self.max_chars = max_chars


class TemplateFetchError(CarePlanError):
    def __init__(self, source: str, reason: str, status: int | None = None) -> None:
        prefix = f"HTTP {status}: " if status is not None else ""
        super().__init__(f"Failed to fetch template {source!r}: {prefix}{reason}")
        self.source = source
        self.status = status


class PlaceholderNotFoundError(CarePlanError):
    def __init__(self, section: str, token: bytes) -> None:
        preview = token[:16].decode("latin-1")
        super().__init__(
            f"Placeholder for '{section}' ({len(token)} bytes starting {preview!r}) not found in template.",
            hint="Check the template profile or pass --allow-missing-placeholders.",
        )
        self.section = section
        self.token = token


class PlaceholderOverlapError(CarePlanError):
    def __init__(self, first: str, second: str, offset: int) -> None:
        super().__init__(
            f"Placeholder regions for '{first}' and '{second}' overlap at byte {offset}."
        )
        self.sections = (first, second)
        self.offset = offset


class FieldNotFoundError(CarePlanError):
    def __init__(self, field_name: str, available: list[str]) -> None:
        listed = ", ".join(available) if available else "none"
        super().__init__(f"Form field '{field_name}' not found. Template fields: {listed}.")
        self.field_name = field_name
        self.available = list(available)


class CorruptionError(CarePlanError):
    """The merged buffer no longer parses as the template's document, or pypdf failed writing it."""


class ProfileError(CarePlanError):
    """A template profile is missing keys or holds invalid values."""


class StrategyUnavailableError(CarePlanError):
    """The requested merge strategy is not supported by the template."""


class MergeFailedError(CarePlanError):
    """Consolidated failure raised by the top-level merge call.

    The underlying ``CarePlanError`` is chained as ``__cause__``.
    """
