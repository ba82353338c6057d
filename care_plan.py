from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from care_plan_merge import load_template, run_merge
from plan_config import STRATEGY_CHOICES, load_profile, load_settings
from plan_errors import CarePlanError, MergeFailedError, ValidationError
from section_text import SECTION_NAMES, length_report
from template_probe import annotate_boxes, find_text_spans, inspect_template


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Merge beliefs, values, and wishes into the advance care planning guide PDF."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_sections(p: argparse.ArgumentParser) -> None:
        for name in SECTION_NAMES:
            p.add_argument(f"--{name}", default=None, help=f"Text for the {name} section.")
            p.add_argument(f"--{name}-file", default=None, help=f"Read the {name} section from a UTF-8 file.")

    def add_template(p: argparse.ArgumentParser) -> None:
        p.add_argument("--template", help="Template PDF path or URL (overrides CARE_PLAN_TEMPLATE).")
        p.add_argument("--profile", help="Built-in profile name or profile JSON path (overrides CARE_PLAN_PROFILE).")

    merge = sub.add_parser("merge", help="Produce the completed care plan PDF.")
    add_sections(merge)
    add_template(merge)
    merge.add_argument("--strategy", choices=STRATEGY_CHOICES, default=None, help="Force a merge strategy.")
    merge.add_argument(
        "--allow-missing-placeholders",
        action="store_true",
        help="Warn and leave a section unchanged when its placeholder is missing, instead of failing.",
    )
    merge.add_argument("--output", required=True, help="Output PDF path.")

    validate = sub.add_parser("validate", help="Report section lengths against the limit.")
    add_sections(validate)

    inspect = sub.add_parser("inspect", help="Report the template's fields, placeholders, and page layout.")
    add_template(inspect)
    inspect.add_argument("--page", type=int, default=None, help="Also list text spans on this page index.")
    inspect.add_argument("--contains", help="Filter listed spans by substring (case-insensitive).")
    inspect.add_argument("--output-json", help="Write the report to JSON.")
    inspect.add_argument("--annotate", help="Write a calibration PDF outlining the profile's annotation boxes.")
    return parser.parse_args(argv)


def read_sections(args: argparse.Namespace) -> dict[str, str]:
    sections: dict[str, str] = {}
    for name in SECTION_NAMES:
        path = getattr(args, f"{name}_file")
        text = getattr(args, name)
        if path and text is not None:
            raise ValueError(f"Use either --{name} or --{name}-file, not both.")
        if path:
            text = Path(path).read_text(encoding="utf-8")
        sections[name] = text or ""
    return sections


def command_merge(args: argparse.Namespace) -> int:
    settings = load_settings()
    overrides = {
        "template": args.template or settings.template,
        "profile": args.profile or settings.profile,
        "strategy": args.strategy or settings.strategy,
        "missing_placeholder": "warn" if args.allow_missing_placeholders else settings.missing_placeholder,
    }
    settings = replace(settings, **overrides)

    try:
        result = run_merge(read_sections(args), settings)
    except ValidationError as exc:
        print(exc.detail, file=sys.stderr)
        return 2
    except MergeFailedError as exc:
        print(f"[FAIL] {exc.detail}", file=sys.stderr)
        if exc.hint:
            print(f"Hint: {exc.hint}", file=sys.stderr)
        return 1

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.data)
    for event in result.truncations:
        print(f"[WARN] {event.describe()}")
    print(f"Wrote: {output_path}")
    return 0


def command_validate(args: argparse.Namespace) -> int:
    settings = load_settings()
    report = length_report(read_sections(args), settings.max_chars)
    for name, row in report.items():
        status = f"{row['over']} over" if row["over"] else f"{row['remaining']} remaining"
        print(f"{name:8s} {row['length']:5d}/{row['max_chars']} ({status})")
    return 2 if any(row["over"] for row in report.values()) else 0


def command_inspect(args: argparse.Namespace) -> int:
    settings = load_settings()
    profile = load_profile(args.profile or settings.profile)
    source = args.template or settings.template or settings.template_source(profile)
    template = load_template(source, settings.fetch_timeout)

    report = inspect_template(template, profile)
    if args.page is not None:
        report["spans"] = find_text_spans(template, args.page, contains=args.contains)

    print(f"Template: {source}")
    print(f"Pages: {report['page_count']}  Fields: {len(report['fields'])}")
    for name, info in report["fields"].items():
        print(f"  - {name} ({info['type']}, max length {info['max_length'] or 'unlimited'})")
    for section, info in report.get("placeholders", {}).items():
        pages = ", ".join(str(p + 1) for p in info["pages"]) or "none"
        print(f"  {section}: {len(info['offsets'])} placeholder(s) on page(s) {pages}")
    for idx, item in enumerate(report.get("spans", []), start=1):
        bbox = item["bbox_bottom_left"]
        print(
            f"{idx:03d} | '{item['text']}' | font={item['font']} size={item['size']:.1f} | "
            f"bbox_bl=({bbox[0]:.2f},{bbox[1]:.2f},{bbox[2]:.2f},{bbox[3]:.2f})"
        )

    if args.output_json:
        output_json = Path(args.output_json)
        output_json.parent.mkdir(parents=True, exist_ok=True)
        output_json.write_text(json.dumps(report, indent=2), encoding="utf-8")
        print(f"Wrote JSON: {output_json}")
    if args.annotate:
        annotate_boxes(template, profile, Path(args.annotate))
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    handlers = {"merge": command_merge, "validate": command_validate, "inspect": command_inspect}
    try:
        return handlers[args.command](args)
    except (CarePlanError, ValueError, OSError) as exc:
        print(f"[FAIL] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
