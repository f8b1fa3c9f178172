"""UpcomingService dataclass for calculated schedule status."""

from dataclasses import dataclass
from datetime import date
from typing import Optional, TYPE_CHECKING

from .formatting import format_display_date
from .status import MaintenanceStatus

if TYPE_CHECKING:
    from .schedule import ServiceSchedule


@dataclass
class UpcomingService:
    """A schedule paired with its status as of one evaluation."""

    schedule: "ServiceSchedule"
    status: MaintenanceStatus
    due_date: Optional[date] = None
    days_until_due: Optional[int] = None
    miles_until_due: Optional[float] = None

    @property
    def due_date_label(self) -> Optional[str]:
        return format_display_date(self.due_date)

    @property
    def is_due(self) -> bool:
        return self.status in (MaintenanceStatus.OVERDUE, MaintenanceStatus.DUE_SOON)
