"""Status enum for maintenance urgency levels."""

from enum import Enum


class MaintenanceStatus(Enum):
    """Maintenance status categories."""

    OK = "ok"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"

    @property
    def urgency(self) -> int:
        """Lower value = more urgent."""
        return _URGENCY[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value):
        """Return the matching status, or None for absent/unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


_URGENCY = {
    MaintenanceStatus.OVERDUE: 1,
    MaintenanceStatus.DUE_SOON: 2,
    MaintenanceStatus.OK: 3,
}

_LABELS = {
    MaintenanceStatus.OVERDUE: "Overdue",
    MaintenanceStatus.DUE_SOON: "Due soon",
    MaintenanceStatus.OK: "On track",
}
