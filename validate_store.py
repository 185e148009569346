#!/usr/bin/env python3
"""Validate fleet store YAML files against the schema."""
import os
import sys
from collections import Counter
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

import yaml
from jsonschema import Draft7Validator


def load_schema() -> dict:
    """Load the JSON schema from schema.yaml."""
    schema_path = Path(__file__).parent / "schema.yaml"
    with open(schema_path) as f:
        return yaml.safe_load(f)


def _dates_to_text(value: Any) -> Any:
    """Unquoted YAML dates load as date objects; the store reads them as text."""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _dates_to_text(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_dates_to_text(v) for v in value]
    return value


def validate_store_file(filepath: Path, schema: dict) -> List[str]:
    """Validate a single store file. Returns list of errors."""
    errors = []
    try:
        with open(filepath) as f:
            data = _dates_to_text(yaml.safe_load(f))
    except yaml.YAMLError as e:
        return [f"YAML parse error: {e}"]
    except OSError as e:
        return [f"Error: {e}"]

    validator = Draft7Validator(schema)
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.path)):
        errors.append(f"Schema validation error: {error.message}")
        if error.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in error.path)}")

    if not errors:
        vehicles = data.get("vehicles") or []
        counts = Counter(v["registrationNumber"] for v in vehicles)
        for number, count in sorted(counts.items()):
            if count > 1:
                errors.append(f"Duplicate registration number: {number} ({count} vehicles)")
    return errors


def main(argv: Optional[List[str]] = None):
    """Validate the given store files (default: $FLEETDOCS_DATA_FILE or fleet.yaml)."""
    argv = sys.argv[1:] if argv is None else argv
    paths = [Path(p) for p in argv] or [Path(os.environ.get("FLEETDOCS_DATA_FILE", "fleet.yaml"))]
    schema = load_schema()

    all_valid = True
    for filepath in paths:
        if not filepath.exists():
            print(f"FAIL: {filepath} (file not found)")
            all_valid = False
            continue
        errors = validate_store_file(filepath, schema)
        if errors:
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {filepath.name}")

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
