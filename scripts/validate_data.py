"""Validate local dataset files before they are published.

Usage: python scripts/validate_data.py --index dist/index.transformed.json --topology dist/kfz250.topo.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from kfzlotti.validators import (
    DEFAULT_TOPOLOGY_OBJECT,
    index_integrity_errors,
    is_valid_auxiliary,
    is_valid_index,
    is_valid_topology,
)

LOGGER = logging.getLogger("kfzlotti.validate_data")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate KFZ dataset files.")
    parser.add_argument("--index", type=Path, help="Search index JSON (dataVersion, codeToIds, features).")
    parser.add_argument("--topology", type=Path, help="District geometry JSON.")
    parser.add_argument("--topology-object", default=DEFAULT_TOPOLOGY_OBJECT)
    parser.add_argument("--auxiliary", type=Path, action="append", default=[], help="Auxiliary JSON object (repeatable).")
    return parser.parse_args(argv)


def _read(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def validate_index_file(path: Path) -> List[str]:
    try:
        data = _read(path)
    except (OSError, ValueError) as exc:
        return [f"{path}: unreadable ({exc})"]
    if not is_valid_index(data):
        return [f"{path}: requires string dataVersion/buildHash and codeToIds/features objects"]
    return [f"{path}: {problem}" for problem in index_integrity_errors(data)]


def validate_topology_file(path: Path, object_name: str = DEFAULT_TOPOLOGY_OBJECT) -> List[str]:
    try:
        data = _read(path)
    except (OSError, ValueError) as exc:
        return [f"{path}: unreadable ({exc})"]
    if not is_valid_topology(data, object_name):
        return [f"{path}: geometry group {object_name!r} is missing or empty"]
    return []


def validate_auxiliary_file(path: Path) -> List[str]:
    try:
        data = _read(path)
    except (OSError, ValueError) as exc:
        return [f"{path}: unreadable ({exc})"]
    if not is_valid_auxiliary(data):
        return [f"{path}: expected a non-empty JSON object"]
    return []


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = parse_args(argv)
    problems: List[str] = []
    checked = 0
    if args.index:
        problems.extend(validate_index_file(args.index))
        checked += 1
    if args.topology:
        problems.extend(validate_topology_file(args.topology, args.topology_object))
        checked += 1
    for path in args.auxiliary:
        problems.extend(validate_auxiliary_file(path))
        checked += 1

    if checked == 0:
        LOGGER.error("Nothing to validate; pass --index, --topology or --auxiliary")
        return 2
    for problem in problems:
        LOGGER.error(problem)
    if problems:
        return 1
    LOGGER.info("%s file(s) valid", checked)
    return 0


if __name__ == "__main__":
    sys.exit(main())
