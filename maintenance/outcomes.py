"""Dispatch results and the aggregated run report."""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from .decisions import SkipReason
from .status import MaintenanceStatus

SCHEDULE = "schedule"
MILEAGE = "mileage"


@dataclass(frozen=True)
class Sent:
    delivery_id: str


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason


@dataclass(frozen=True)
class Failed:
    error: str


DispatchResult = Union[Sent, Skipped, Failed]


@dataclass
class ReminderOutcome:
    """What happened to one schedule reminder or one mileage nudge."""

    kind: str
    vehicle_id: str
    result: DispatchResult
    schedule_id: Optional[str] = None
    recipient: Optional[str] = None
    status: Optional[MaintenanceStatus] = None

    def to_dict(self) -> dict:
        d = {"vehicleId": self.vehicle_id}
        if self.kind == SCHEDULE:
            d["scheduleId"] = self.schedule_id or "n/a"
        if isinstance(self.result, Sent):
            d["email"] = self.recipient
            if self.status is not None:
                d["status"] = self.status.value
            d["messageId"] = self.result.delivery_id
        elif isinstance(self.result, Skipped):
            d["reason"] = self.result.reason.value
        else:
            d["error"] = self.result.error
        return d


@dataclass
class RunReport:
    """Counts and per-item outcomes of one reminder run."""

    processed_vehicles: int = 0
    cancelled: bool = False
    sent: List[ReminderOutcome] = field(default_factory=list)
    skipped: List[ReminderOutcome] = field(default_factory=list)
    errors: List[ReminderOutcome] = field(default_factory=list)
    mileage_sent: List[ReminderOutcome] = field(default_factory=list)
    mileage_skipped: List[ReminderOutcome] = field(default_factory=list)
    mileage_errors: List[ReminderOutcome] = field(default_factory=list)

    def add(self, outcome: ReminderOutcome) -> None:
        if outcome.kind == MILEAGE:
            buckets = (self.mileage_sent, self.mileage_skipped, self.mileage_errors)
        else:
            buckets = (self.sent, self.skipped, self.errors)
        if isinstance(outcome.result, Sent):
            buckets[0].append(outcome)
        elif isinstance(outcome.result, Skipped):
            buckets[1].append(outcome)
        else:
            buckets[2].append(outcome)

    @property
    def sent_count(self) -> int:
        return len(self.sent)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def mileage_sent_count(self) -> int:
        return len(self.mileage_sent)

    @property
    def mileage_skipped_count(self) -> int:
        return len(self.mileage_skipped)

    @property
    def mileage_error_count(self) -> int:
        return len(self.mileage_errors)

    def to_dict(self) -> dict:
        return {
            "processedVehicles": self.processed_vehicles,
            "sentCount": self.sent_count,
            "skippedCount": self.skipped_count,
            "errorCount": self.error_count,
            "mileageSentCount": self.mileage_sent_count,
            "mileageSkippedCount": self.mileage_skipped_count,
            "mileageErrorCount": self.mileage_error_count,
            "cancelled": self.cancelled,
            "sent": [o.to_dict() for o in self.sent],
            "skipped": [o.to_dict() for o in self.skipped],
            "errors": [o.to_dict() for o in self.errors],
            "mileageSent": [o.to_dict() for o in self.mileage_sent],
            "mileageSkipped": [o.to_dict() for o in self.mileage_skipped],
            "mileageErrors": [o.to_dict() for o in self.mileage_errors],
        }
