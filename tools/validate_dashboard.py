#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from config.settings import settings
from dashboard.loader import read_config_file
from dashboard.schema import DashboardConfig, validate


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate a dashboard JSON document.")
    parser.add_argument(
        "path",
        nargs="?",
        default=settings.fallback_config,
        help="Dashboard JSON file (default: embedded fallback document)",
    )
    parser.add_argument("--json", action="store_true", help="Print the issue list as JSON")
    return parser.parse_args(argv)


def summarize(config: DashboardConfig) -> list[str]:
    lines = [
        f"version: {config.version}",
        f"pages: {len(config.pages)} ({', '.join(config.page_ids())})",
        f"initial page: {config.navigation.initial_page}",
        f"data sources: {len(config.data_sources)}",
    ]
    for page in config.pages:
        lines.append(f"  - {page.id}: {page.name} [{page.layout.type}] {len(page.panels)} panel(s)")
    return lines


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    path = Path(args.path)
    try:
        document = read_config_file(path)
    except (OSError, ValueError) as exc:
        print(f"[error] cannot read {path}: {exc}", file=sys.stderr)
        return 1

    result = validate(document)
    if args.json:
        payload = {
            "valid": result.valid,
            "errors": [{"path": i.path, "message": i.message, "code": i.code} for i in result.errors],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0 if result.valid else 1

    if not result.valid:
        print(f"[invalid] {path}: {len(result.errors)} issue(s)")
        for issue in result.errors:
            print(f"  {issue.path or '<root>'}: {issue.message} ({issue.code})")
        return 1

    print(f"[valid] {path}")
    for line in summarize(result.data):
        print(f"  {line}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
