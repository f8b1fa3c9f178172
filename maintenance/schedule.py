"""ServiceSchedule class for recurring maintenance obligations."""
from datetime import date
from typing import Optional, Union

from .calculations import calc_next_due_date, calc_next_due_mileage, parse_date
from .status import MaintenanceStatus


class ServiceSchedule:
    """A recurring maintenance obligation tied to one vehicle."""

    def __init__(
            self,
            id: str,
            vehicle_id: str,
            service_code: str,
            service_name: str,
            interval_months: Optional[float] = None,
            interval_miles: Optional[float] = None,
            reminder_lead_days: Optional[int] = None,
            reminder_lead_miles: Optional[float] = None,
            next_due_date: Optional[str] = None,
            next_due_mileage: Optional[float] = None,
            last_completed_date: Optional[str] = None,
            last_completed_mileage: Optional[float] = None,
            last_reminder_sent_at: Optional[str] = None,
            last_reminder_status: Optional[MaintenanceStatus] = None,
    ):
        self.id = id
        self.vehicle_id = vehicle_id
        self.service_code = service_code
        self.service_name = service_name
        self.interval_months = interval_months
        self.interval_miles = interval_miles
        self.reminder_lead_days = reminder_lead_days
        self.reminder_lead_miles = reminder_lead_miles
        self.next_due_date = next_due_date
        self.next_due_mileage = next_due_mileage
        self.last_completed_date = last_completed_date
        self.last_completed_mileage = last_completed_mileage
        self.last_reminder_sent_at = last_reminder_sent_at
        self.last_reminder_status = MaintenanceStatus.parse(last_reminder_status)

    def record_completion(
            self, service_date: Union[str, date], mileage: Optional[float] = None
    ) -> None:
        """
        Roll the schedule forward after a completed service.

        Recurrence restarts from the service itself, not from the old due
        point. A due point without a matching interval (or without a service
        mileage) is left as it was. Reminder bookkeeping is reset so the new
        due state gets its own reminders.
        """
        done_on = parse_date(service_date)
        if done_on is None:
            raise ValueError(f"Invalid service date: {service_date!r}")

        next_date = calc_next_due_date(done_on, self.interval_months)
        next_miles = calc_next_due_mileage(mileage, self.interval_miles)

        self.last_completed_date = done_on.isoformat()
        self.last_completed_mileage = mileage
        if next_date is not None:
            self.next_due_date = next_date.isoformat()
        if next_miles is not None:
            self.next_due_mileage = next_miles
        self.clear_reminder()

    def mark_reminder_sent(self, status: MaintenanceStatus, sent_at: str) -> None:
        self.last_reminder_sent_at = sent_at
        self.last_reminder_status = status

    def clear_reminder(self) -> None:
        self.last_reminder_sent_at = None
        self.last_reminder_status = None
