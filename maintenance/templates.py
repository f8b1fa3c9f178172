"""Default maintenance schedule templates and schedule backfill."""

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from .calculations import calc_next_due_date, parse_mileage
from .schedule import ServiceSchedule
from .vehicle import Vehicle


@dataclass(frozen=True)
class ScheduleTemplate:
    code: str
    name: str
    interval_miles: Optional[float] = None
    interval_months: Optional[float] = None
    reminder_lead_miles: Optional[float] = None
    reminder_lead_days: Optional[int] = None
    first_due_mileage: Optional[float] = None


DEFAULT_SERVICE_TEMPLATES = [
    ScheduleTemplate("oil_change", "Oil Change", 5000, 6, 500, 14),
    ScheduleTemplate("tire_rotation", "Tire Rotation", 6000, 6, 500, 14),
    ScheduleTemplate("brake_inspection", "Brake Inspection", None, 12, 0, 30),
    ScheduleTemplate("engine_air_filter", "Replace Engine Air Filter", 15000, 24, 1000, 30),
    ScheduleTemplate("cabin_air_filter", "Replace Cabin Air Filter", 15000, 12, 1000, 21),
    ScheduleTemplate("brake_fluid_flush", "Brake Fluid Flush", None, 24, None, 21),
    ScheduleTemplate("coolant_service", "Coolant Flush & Replace", 60000, 60, 1000, 45),
    ScheduleTemplate("transmission_service", "Transmission Fluid Service", 60000, 60, 1000, 45),
    ScheduleTemplate("spark_plug_replacement", "Replace Spark Plugs", 100000, 72, 5000, 45),
    ScheduleTemplate("battery_check", "Battery & Charging System Check", None, 12, None, 14),
    ScheduleTemplate("wiper_blade_replacement", "Replace Wiper Blades", None, 12, None, 14),
]


def _positive(value):
    value = parse_mileage(value)
    return value if value else None


def materialize_schedules(
    vehicle: Vehicle,
    templates: Iterable[ScheduleTemplate],
    reference_date: date,
) -> List[ServiceSchedule]:
    """
    Create a vehicle's first schedules from templates.

    - Due date: reference date + interval months
    - Due mileage: current mileage + interval miles, or the template's first
      due mileage (defaulting to the interval) when mileage is unknown
    - Lead thresholds of zero or less are stored as absent
    """
    schedules = []
    current_miles = parse_mileage(vehicle.current_mileage)

    for template in templates:
        interval_months = _positive(template.interval_months)
        interval_miles = _positive(template.interval_miles)

        due_date = calc_next_due_date(reference_date, interval_months)
        if interval_miles and current_miles is not None:
            due_miles = current_miles + interval_miles
        else:
            due_miles = _positive(template.first_due_mileage) or interval_miles

        schedules.append(
            ServiceSchedule(
                id=str(uuid.uuid4()),
                vehicle_id=vehicle.id,
                service_code=template.code,
                service_name=template.name,
                interval_months=interval_months,
                interval_miles=interval_miles,
                reminder_lead_days=_positive(template.reminder_lead_days),
                reminder_lead_miles=_positive(template.reminder_lead_miles),
                next_due_date=due_date.isoformat() if due_date else None,
                next_due_mileage=due_miles,
            )
        )
    return schedules
