"""
Reminder decisions.

Both decisions are pure functions of the bookkeeping they are handed and an
injected "now". They never raise on bad stored data: an unusable last-sent
timestamp counts as never sent, an unusable mileage baseline suppresses the
mileage nudge.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, TYPE_CHECKING

from .calculations import parse_timestamp
from .config import DEFAULT_MILEAGE_STALE_DAYS, DEFAULT_REPEAT_HOURS
from .status import MaintenanceStatus

if TYPE_CHECKING:
    from .schedule import ServiceSchedule
    from .vehicle import Vehicle


class SkipReason(Enum):
    """Machine-readable reasons for not sending a reminder."""

    WITHIN_THRESHOLD = "within_threshold"
    RECENTLY_SENT = "recently_sent"
    INVALID_BASELINE = "invalid_baseline"
    NOT_REQUIRED = "not_required"
    MISSING_CONTACT_EMAIL = "missing_contact_email"


@dataclass(frozen=True)
class ReminderDecision:
    send: bool
    reason: Optional[SkipReason] = None

    def __post_init__(self):
        if not self.send and self.reason is None:
            raise ValueError("A skip decision needs a reason")


SEND = ReminderDecision(send=True)


def skip(reason: SkipReason) -> ReminderDecision:
    return ReminderDecision(send=False, reason=reason)


def should_send_schedule_reminder(
    schedule: "ServiceSchedule",
    status: MaintenanceStatus,
    now: datetime,
    repeat_hours: int = DEFAULT_REPEAT_HOURS,
) -> ReminderDecision:
    """
    Decide whether a schedule's reminder must go out now.

    Send when never sent before, when the last-sent timestamp is unusable,
    when the status changed since the last send, or once the repeat window
    has elapsed. OK schedules never need a reminder.
    """
    if status == MaintenanceStatus.OK:
        return skip(SkipReason.NOT_REQUIRED)

    now = parse_timestamp(now)
    if not schedule.last_reminder_sent_at:
        return SEND

    last_sent = parse_timestamp(schedule.last_reminder_sent_at)
    if last_sent is None:
        return SEND

    if schedule.last_reminder_status != status:
        return SEND

    if now - last_sent >= timedelta(hours=repeat_hours):
        return SEND

    return skip(SkipReason.RECENTLY_SENT)


def mileage_baseline(vehicle: "Vehicle") -> Optional[datetime]:
    """Last mileage confirmation, or vehicle creation when never confirmed."""
    raw = vehicle.last_mileage_confirmed_at or vehicle.created_at
    return parse_timestamp(raw)


def should_send_mileage_reminder(
    vehicle: "Vehicle",
    now: datetime,
    stale_days: int = DEFAULT_MILEAGE_STALE_DAYS,
    repeat_hours: int = DEFAULT_REPEAT_HOURS,
) -> ReminderDecision:
    """
    Decide whether to nudge the owner to confirm the odometer reading.

    Stale once stale_days have passed since the baseline; repeated at most
    once per repeat window.
    """
    now = parse_timestamp(now)
    baseline = mileage_baseline(vehicle)
    if baseline is None:
        return skip(SkipReason.INVALID_BASELINE)

    if now - baseline < timedelta(days=stale_days):
        return skip(SkipReason.WITHIN_THRESHOLD)

    last_sent = parse_timestamp(vehicle.last_mileage_reminder_at)
    if last_sent is not None and now - last_sent < timedelta(hours=repeat_hours):
        return skip(SkipReason.RECENTLY_SENT)

    return SEND
