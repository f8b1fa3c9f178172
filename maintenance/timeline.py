"""Merge upcoming schedules and completed service logs into one feed."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, TYPE_CHECKING

from .calculations import get_upcoming_services, parse_date, parse_mileage
from .formatting import format_cost_cents, format_display_date, format_mileage_label
from .status import MaintenanceStatus

if TYPE_CHECKING:
    from .schedule import ServiceSchedule
    from .service_log import ServiceLog
    from .vehicle import Vehicle

UPCOMING = "upcoming"
COMPLETED = "completed"


@dataclass
class TimelineEntry:
    """One item of the maintenance timeline."""

    id: str
    type: str
    title: str
    date_label: Optional[str]
    mileage_label: Optional[str]
    status: Optional[MaintenanceStatus] = None
    schedule_id: Optional[str] = None
    notes: Optional[str] = None
    cost_label: Optional[str] = None
    sort_date: Optional[str] = None
    sort_mileage: Optional[float] = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "dateLabel": self.date_label,
            "mileageLabel": self.mileage_label,
        }
        if self.type == UPCOMING:
            d["status"] = self.status.value if self.status else None
            d["scheduleId"] = self.schedule_id
        else:
            d["notes"] = self.notes
            d["costLabel"] = self.cost_label
        return d


def build_timeline(
    schedules: Iterable["ServiceSchedule"],
    logs: Iterable["ServiceLog"],
    vehicle: "Vehicle",
    now: datetime,
) -> List[TimelineEntry]:
    """
    Build the timeline: one upcoming item per schedule, then one completed
    item per log. The two groups are concatenated, not interleaved.
    """
    entries = []

    for item in get_upcoming_services(schedules, vehicle, now):
        schedule = item.schedule
        due_miles = parse_mileage(schedule.next_due_mileage)
        entries.append(
            TimelineEntry(
                id=f"upcoming-{schedule.id}",
                type=UPCOMING,
                title=schedule.service_name,
                date_label=item.due_date_label,
                mileage_label=format_mileage_label(due_miles),
                status=item.status,
                schedule_id=schedule.id,
                sort_date=item.due_date.isoformat() if item.due_date else None,
                sort_mileage=due_miles,
            )
        )

    for log in logs:
        service_date = parse_date(log.service_date)
        mileage = parse_mileage(log.mileage)
        entries.append(
            TimelineEntry(
                id=f"log-{log.id}",
                type=COMPLETED,
                title=log.service_name,
                date_label=format_display_date(service_date),
                mileage_label=format_mileage_label(mileage),
                notes=log.notes,
                cost_label=format_cost_cents(log.cost_cents),
                sort_date=service_date.isoformat() if service_date else None,
                sort_mileage=mileage,
            )
        )

    return entries


def by_date(entry: TimelineEntry):
    """Sort key: entries without a date last."""
    return (entry.sort_date is None, entry.sort_date or "")


def sort_timeline(
    entries: Iterable[TimelineEntry],
    key: Callable[[TimelineEntry], object] = by_date,
    reverse: bool = False,
) -> List[TimelineEntry]:
    """Return the entries ordered by a caller-chosen key (stable)."""
    return sorted(entries, key=key, reverse=reverse)
