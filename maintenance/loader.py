"""YAML loading and saving utilities for vehicle records."""

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from jsonschema import ValidationError, validate

from .errors import RepositoryError
from .schedule import ServiceSchedule
from .service_log import ServiceLog
from .vehicle import Vehicle

SCHEMA_PATH = Path(__file__).parent / "schema.yaml"


@dataclass
class VehicleRecord:
    """Everything stored for one vehicle."""

    vehicle: Vehicle
    schedules: List[ServiceSchedule] = field(default_factory=list)
    history: List[ServiceLog] = field(default_factory=list)


def load_schema() -> dict:
    """Load the JSON schema for vehicle files."""
    with open(SCHEMA_PATH) as f:
        return yaml.safe_load(f)


def normalize_dates(value):
    """YAML turns unquoted dates into date objects; keep them as ISO text."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: normalize_dates(v) for k, v in value.items()}
    if isinstance(value, list):
        return [normalize_dates(v) for v in value]
    return value


def _vehicle_from_dict(dct: Dict[str, Any]) -> Vehicle:
    return Vehicle(
        str(dct["id"]),
        dct["make"],
        dct["model"],
        dct.get("year"),
        dct.get("vin"),
        dct.get("contactEmail"),
        dct.get("currentMileage"),
        dct.get("lastMileageConfirmedAt"),
        dct.get("lastMileageReminderAt"),
        dct.get("createdAt"),
    )


def _schedule_from_dict(dct: Dict[str, Any], vehicle_id: str) -> ServiceSchedule:
    return ServiceSchedule(
        str(dct["id"]),
        vehicle_id,
        dct["serviceCode"],
        dct["serviceName"],
        dct.get("intervalMonths"),
        dct.get("intervalMiles"),
        dct.get("reminderLeadDays"),
        dct.get("reminderLeadMiles"),
        dct.get("nextDueDate"),
        dct.get("nextDueMileage"),
        dct.get("lastCompletedDate"),
        dct.get("lastCompletedMileage"),
        dct.get("lastReminderSentAt"),
        dct.get("lastReminderStatus"),
    )


def _log_from_dict(dct: Dict[str, Any], vehicle_id: str) -> ServiceLog:
    return ServiceLog(
        str(dct["id"]),
        vehicle_id,
        dct["serviceName"],
        dct["serviceDate"],
        dct.get("scheduleId"),
        dct.get("serviceCode"),
        dct.get("mileage"),
        dct.get("costCents"),
        dct.get("notes"),
        dct.get("createdAt"),
    )


def record_from_dict(data: Dict[str, Any]) -> VehicleRecord:
    """Parse raw YAML data into a VehicleRecord."""
    vehicle = _vehicle_from_dict(data["vehicle"])
    return VehicleRecord(
        vehicle=vehicle,
        schedules=[_schedule_from_dict(s, vehicle.id) for s in data.get("schedules") or []],
        history=[_log_from_dict(h, vehicle.id) for h in data.get("history") or []],
    )


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None values for cleaner YAML."""
    return {k: v for k, v in d.items() if v is not None}


def _vehicle_to_dict(vehicle: Vehicle) -> Dict[str, Any]:
    return _compact({
        "id": vehicle.id,
        "make": vehicle.make,
        "model": vehicle.model,
        "year": vehicle.year,
        "vin": vehicle.vin,
        "contactEmail": vehicle.contact_email,
        "currentMileage": vehicle.current_mileage,
        "lastMileageConfirmedAt": vehicle.last_mileage_confirmed_at,
        "lastMileageReminderAt": vehicle.last_mileage_reminder_at,
        "createdAt": vehicle.created_at,
    })


def _schedule_to_dict(schedule: ServiceSchedule) -> Dict[str, Any]:
    status = schedule.last_reminder_status
    return _compact({
        "id": schedule.id,
        "serviceCode": schedule.service_code,
        "serviceName": schedule.service_name,
        "intervalMonths": schedule.interval_months,
        "intervalMiles": schedule.interval_miles,
        "reminderLeadDays": schedule.reminder_lead_days,
        "reminderLeadMiles": schedule.reminder_lead_miles,
        "nextDueDate": schedule.next_due_date,
        "nextDueMileage": schedule.next_due_mileage,
        "lastCompletedDate": schedule.last_completed_date,
        "lastCompletedMileage": schedule.last_completed_mileage,
        "lastReminderSentAt": schedule.last_reminder_sent_at,
        "lastReminderStatus": status.value if status else None,
    })


def _log_to_dict(log: ServiceLog) -> Dict[str, Any]:
    return _compact({
        "id": log.id,
        "scheduleId": log.schedule_id,
        "serviceCode": log.service_code,
        "serviceName": log.service_name,
        "serviceDate": log.service_date,
        "mileage": log.mileage,
        "costCents": log.cost_cents,
        "notes": log.notes,
        "createdAt": log.created_at,
    })


def record_to_dict(record: VehicleRecord) -> Dict[str, Any]:
    return {
        "vehicle": _vehicle_to_dict(record.vehicle),
        "schedules": [_schedule_to_dict(s) for s in record.schedules],
        "history": [_log_to_dict(h) for h in record.history],
    }


def load_record(filename: Union[str, Path]) -> VehicleRecord:
    """Load and validate a vehicle record from a YAML file."""
    try:
        with open(filename, "r") as fp:
            data = yaml.load(fp, Loader=yaml.SafeLoader)
    except (OSError, yaml.YAMLError) as e:
        raise RepositoryError(f"Cannot read {filename}: {e}") from e

    data = normalize_dates(data)
    try:
        validate(instance=data, schema=load_schema())
    except ValidationError as e:
        raise RepositoryError(f"Invalid vehicle file {filename}: {e.message}") from e

    return record_from_dict(data)


def save_record(filename: Union[str, Path], record: VehicleRecord) -> None:
    """Write a vehicle record to a YAML file."""
    path = Path(filename)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp_path, "w") as fp:
            yaml.dump(
                record_to_dict(record),
                fp,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
                width=120,
            )
        tmp_path.replace(path)
    except OSError as e:
        raise RepositoryError(f"Cannot write {filename}: {e}") from e
