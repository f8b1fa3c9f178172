#!/usr/bin/env python3
"""Validate vehicle YAML files against the schema and each other."""
import sys
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from jsonschema import ValidationError, validate

from maintenance.config import ReminderSettings
from maintenance.loader import load_schema, normalize_dates


def check_references(filepath: Path, data: dict, seen: Optional[Dict[str, str]] = None) -> List[str]:
    """
    Checks the schema cannot express.

    The repository finds a vehicle by file name and a schedule by id alone,
    so the file stem must match the vehicle id and schedule ids must be
    unique across the whole data directory. `seen` maps schedule ids to the
    file that first used them.
    """
    errors = []
    seen = {} if seen is None else seen

    vehicle_id = str(data["vehicle"]["id"])
    if vehicle_id != filepath.stem:
        errors.append(f"Vehicle id '{vehicle_id}' does not match file name '{filepath.name}'")

    schedule_ids = set()
    for schedule in data.get("schedules") or []:
        schedule_id = str(schedule["id"])
        if schedule_id in schedule_ids:
            errors.append(f"Duplicate schedule id '{schedule_id}'")
        elif schedule_id in seen:
            errors.append(f"Schedule id '{schedule_id}' already used in {seen[schedule_id]}")
        else:
            seen[schedule_id] = filepath.name
        schedule_ids.add(schedule_id)

    for entry in data.get("history") or []:
        schedule_id = entry.get("scheduleId")
        if schedule_id is not None and str(schedule_id) not in schedule_ids:
            errors.append(
                f"History entry '{entry['id']}' refers to unknown schedule '{schedule_id}'"
            )
    return errors


def validate_vehicle_file(
    filepath: Path, schema: dict, seen: Optional[Dict[str, str]] = None
) -> List[str]:
    """Validate a single vehicle YAML file. Returns list of errors."""
    try:
        with open(filepath) as f:
            data = normalize_dates(yaml.safe_load(f))
        validate(instance=data, schema=schema)
    except yaml.YAMLError as e:
        return [f"YAML parse error: {e}"]
    except ValidationError as e:
        errors = [f"Schema validation error: {e.message}"]
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
        return errors
    except OSError as e:
        return [f"Error: {e}"]
    return check_references(filepath, data, seen)


def main(argv=None):
    """Validate every vehicle file in the data directory."""
    argv = sys.argv[1:] if argv is None else argv
    data_dir = Path(argv[0]) if argv else ReminderSettings.from_env().data_dir

    if not data_dir.is_dir():
        print(f"Error: data directory not found: {data_dir}")
        return 1

    yaml_files = sorted(data_dir.glob("*.yaml"))
    if not yaml_files:
        print(f"Warning: No YAML files found in {data_dir}")
        return 0

    schema = load_schema()
    seen: Dict[str, str] = {}
    failed = 0
    for filepath in yaml_files:
        errors = validate_vehicle_file(filepath, schema, seen)
        if errors:
            failed += 1
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
        else:
            print(f"OK: {filepath.name}")

    print(f"{len(yaml_files) - failed} of {len(yaml_files)} files valid")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
