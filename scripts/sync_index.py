"""Incremental sync: add roster rows missing from the level tables, never delete."""
from __future__ import annotations

import argparse
import json
import sys

from _common import load_container

from src.attendance_reports.attendance_reports.core.exceptions import RebuildFailure


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--triggered-by", default="cli")
    args = parser.parse_args()

    container = load_container()
    try:
        report = container.index_builder.incremental_sync(triggered_by=args.triggered_by)
    except RebuildFailure as e:
        print(f"FAILED: {e}", file=sys.stderr)
        return 1
    finally:
        container.close()

    print(json.dumps(report.as_dict(), indent=2))
    failed = sum(r.failed for r in report.levels.values())
    return 2 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
