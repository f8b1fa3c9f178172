"""ServiceLog class for completed maintenance records."""
from typing import Optional


class ServiceLog:
    """An append-only record of a completed service."""

    def __init__(
            self,
            id: str,
            vehicle_id: str,
            service_name: str,
            service_date: str,
            schedule_id: Optional[str] = None,
            service_code: Optional[str] = None,
            mileage: Optional[float] = None,
            cost_cents: Optional[int] = None,
            notes: Optional[str] = None,
            created_at: Optional[str] = None,
    ):
        self.id = id
        self.vehicle_id = vehicle_id
        self.service_name = service_name
        self.service_date = service_date
        self.schedule_id = schedule_id
        self.service_code = service_code
        self.mileage = mileage
        self.cost_cents = cost_cents
        self.notes = notes
        self.created_at = created_at
