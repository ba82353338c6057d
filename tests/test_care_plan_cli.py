import json
from pathlib import Path

import pytest

from care_plan import main
from section_text import MAX_CHARS
from tests.pdf_builders import placeholder_pdf


@pytest.fixture
def editing_file(tmp_path: Path, editing_template: bytes) -> Path:
    path = tmp_path / "guide.pdf"
    path.write_bytes(editing_template)
    return path


def test_validate_reports_overages(capsys: pytest.CaptureFixture) -> None:
    code = main(["validate", "--beliefs", "ok", "--values", "v" * (MAX_CHARS + 4), "--wishes", "fine"])

    out = capsys.readouterr().out
    assert code == 2
    assert "4 over" in out
    assert f"{MAX_CHARS - 2} remaining" in out


def test_validate_passes_within_limit(capsys: pytest.CaptureFixture) -> None:
    assert main(["validate", "--beliefs", "a", "--values", "b", "--wishes", "c"]) == 0


def test_merge_writes_output(tmp_path: Path, editing_file: Path, editing_template: bytes) -> None:
    wishes = tmp_path / "wishes.txt"
    wishes.write_text("Keep me comfortable at home.", encoding="utf-8")
    output = tmp_path / "out" / "plan.pdf"

    code = main(
        [
            "merge",
            "--template", str(editing_file),
            "--profile", "editing",
            "--beliefs", "My faith.",
            "--values", "My family.",
            "--wishes-file", str(wishes),
            "--output", str(output),
        ]
    )

    assert code == 0
    data = output.read_bytes()
    assert len(data) == len(editing_template)
    assert b"(Keep me comfortable at home." in data


def test_merge_rejects_overlong_section(tmp_path: Path, editing_file: Path, capsys: pytest.CaptureFixture) -> None:
    output = tmp_path / "plan.pdf"
    code = main(
        [
            "merge",
            "--template", str(editing_file),
            "--profile", "editing",
            "--beliefs", "x" * (MAX_CHARS + 1),
            "--output", str(output),
        ]
    )

    assert code == 2
    assert "Beliefs: 1 characters over the limit" in capsys.readouterr().err
    assert not output.exists()


def test_merge_missing_placeholder_fails_unless_allowed(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    template = tmp_path / "partial.pdf"
    template.write_bytes(placeholder_pdf([(0, "a" * MAX_CHARS)], pages=1))
    output = tmp_path / "plan.pdf"
    args = ["merge", "--template", str(template), "--profile", "editing", "--beliefs", "hi", "--output", str(output)]

    assert main(args) == 1
    err = capsys.readouterr().err
    assert "not found in template" in err
    assert "--allow-missing-placeholders" in err
    assert not output.exists()

    assert main(args + ["--allow-missing-placeholders"]) == 0
    assert output.exists()


def test_merge_rejects_text_and_file_for_the_same_section(tmp_path: Path, editing_file: Path) -> None:
    notes = tmp_path / "beliefs.txt"
    notes.write_text("from file", encoding="utf-8")
    code = main(
        [
            "merge",
            "--template", str(editing_file),
            "--beliefs", "inline",
            "--beliefs-file", str(notes),
            "--output", str(tmp_path / "plan.pdf"),
        ]
    )
    assert code == 1


def test_inspect_writes_json_report(tmp_path: Path, editing_file: Path) -> None:
    report_path = tmp_path / "report.json"

    code = main(
        ["inspect", "--template", str(editing_file), "--profile", "editing", "--output-json", str(report_path)]
    )

    assert code == 0
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["page_count"] == 3
    assert report["placeholders"]["wishes"]["pages"] == [1]
