"""Helper functions for due-status calculations."""

from datetime import date, datetime, timezone
from numbers import Real
from typing import Iterable, List, Optional, TYPE_CHECKING

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from .status import MaintenanceStatus
from .upcoming import UpcomingService

if TYPE_CHECKING:
    from .schedule import ServiceSchedule
    from .vehicle import Vehicle


def parse_date(value) -> Optional[date]:
    """Parse a stored date. Malformed or missing values are None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return isoparse(value.strip()).date()
    except (ValueError, OverflowError):
        return None


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a stored ISO timestamp into an aware datetime (naive means UTC)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = isoparse(value.strip())
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_mileage(value) -> Optional[float]:
    """Return a usable odometer value, or None for missing/negative/non-numeric."""
    if value is None or isinstance(value, bool) or not isinstance(value, Real):
        return None
    if value < 0:
        return None
    return value


def calc_next_due_date(
    last_date: Optional[date], interval_months: Optional[float]
) -> Optional[date]:
    """Calculate next due date: last + interval months."""
    if interval_months is None or interval_months <= 0 or last_date is None:
        return None
    months = int(interval_months)
    days = int((interval_months - months) * 30)
    return last_date + relativedelta(months=months, days=days)


def calc_next_due_mileage(
    last_miles: Optional[float], interval_miles: Optional[float]
) -> Optional[float]:
    """Calculate next due mileage: last + interval miles."""
    if interval_miles is None or interval_miles <= 0 or last_miles is None:
        return None
    return last_miles + interval_miles


def check_status(
    days_until_due: Optional[int],
    miles_until_due: Optional[float],
    lead_days: Optional[float],
    lead_miles: Optional[float],
) -> MaintenanceStatus:
    """
    Determine status from remaining days/miles and lead thresholds.

    Either dimension reaching zero is OVERDUE. A lead threshold of zero or
    less disables the DUE_SOON window for that dimension.
    """
    if (days_until_due is not None and days_until_due <= 0) or (
        miles_until_due is not None and miles_until_due <= 0
    ):
        return MaintenanceStatus.OVERDUE

    lead_days = lead_days or 0
    lead_miles = lead_miles or 0
    if (days_until_due is not None and lead_days > 0 and days_until_due <= lead_days) or (
        miles_until_due is not None and lead_miles > 0 and miles_until_due <= lead_miles
    ):
        return MaintenanceStatus.DUE_SOON

    return MaintenanceStatus.OK


def evaluate_schedule(
    schedule: "ServiceSchedule",
    current_mileage: Optional[float],
    now: datetime,
) -> UpcomingService:
    """
    Evaluate one schedule against the vehicle's mileage and the given time.

    Logic:
    - days until due: calendar days from now's date to the next due date
    - miles until due: next due mileage minus current mileage
    - either value <= 0: OVERDUE
    - either value inside its lead window: DUE_SOON
    - otherwise (including no due point at all): OK
    """
    due_date = parse_date(schedule.next_due_date)
    days_until_due = (due_date - now.date()).days if due_date is not None else None

    vehicle_miles = parse_mileage(current_mileage)
    due_miles = parse_mileage(schedule.next_due_mileage)
    miles_until_due = (
        due_miles - vehicle_miles
        if vehicle_miles is not None and due_miles is not None
        else None
    )

    status = check_status(
        days_until_due,
        miles_until_due,
        parse_mileage(schedule.reminder_lead_days),
        parse_mileage(schedule.reminder_lead_miles),
    )

    return UpcomingService(
        schedule=schedule,
        status=status,
        due_date=due_date,
        days_until_due=days_until_due,
        miles_until_due=miles_until_due,
    )


def get_upcoming_services(
    schedules: Iterable["ServiceSchedule"],
    vehicle: "Vehicle",
    now: datetime,
) -> List[UpcomingService]:
    """Evaluate every schedule of a vehicle, preserving input order."""
    return [evaluate_schedule(s, vehicle.current_mileage, now) for s in schedules]
