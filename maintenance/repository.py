"""
Vehicle, schedule and service-log storage.

Repository holds the operations the rest of the package relies on, written
once against three storage primitives (list ids, load a record, save a
record). YamlRepository keeps one YAML file per vehicle, the way vehicle
files have always been kept; MemoryRepository keeps records in a dict.
"""

import copy
import logging
import math
import re
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .calculations import parse_date, parse_mileage
from .errors import NotFoundError, RepositoryError
from .loader import VehicleRecord, load_record, save_record
from .schedule import ServiceSchedule
from .service_log import ServiceLog
from .status import MaintenanceStatus
from .templates import DEFAULT_SERVICE_TEMPLATES, ScheduleTemplate, materialize_schedules
from .vehicle import Vehicle

logger = logging.getLogger(__name__)


def to_iso(value: datetime) -> str:
    """Serialize a timestamp as UTC ISO 8601 (naive means UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def cost_to_cents(cost: Optional[float]) -> Optional[int]:
    if cost is None or isinstance(cost, bool):
        return None
    if not isinstance(cost, (int, float)) or math.isnan(cost) or math.isinf(cost):
        return None
    return int(round(cost * 100))


def _clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    return notes.strip() or None


_store_locks_guard = threading.Lock()
_store_locks = {}


def store_lock(key: str):
    """The lock for one storage location, shared by every repository opened on it."""
    with _store_locks_guard:
        return _store_locks.setdefault(key, threading.RLock())


class Repository(ABC):
    """
    Storage collaborator for the reminder engine and the CLI/web front ends.

    Every read-modify-write of a record holds `_lock`. Repositories over the
    same storage location share it, so a web request and a dispatch pass
    each opening their own repository still take turns.
    """

    def __init__(self, lock=None):
        self._lock = lock or threading.RLock()

    # -- storage primitives ------------------------------------------------

    @abstractmethod
    def _vehicle_ids(self) -> List[str]:
        """Ids of every stored vehicle."""

    @abstractmethod
    def _load(self, vehicle_id: str) -> VehicleRecord:
        """Load one record; raise NotFoundError when it does not exist."""

    @abstractmethod
    def _save(self, record: VehicleRecord) -> None:
        """Persist one record."""

    def _has(self, vehicle_id: str) -> bool:
        return vehicle_id in self._vehicle_ids()

    def _find_schedule(self, schedule_id: str):
        for vehicle_id in self._vehicle_ids():
            record = self._load(vehicle_id)
            for schedule in record.schedules:
                if schedule.id == schedule_id:
                    return record, schedule
        raise NotFoundError(f"Schedule '{schedule_id}' not found")

    # -- reads -------------------------------------------------------------

    def list_vehicles(self) -> List[Vehicle]:
        with self._lock:
            return [self._load(vid).vehicle for vid in self._vehicle_ids()]

    def list_vehicles_with_contact(self) -> List[Vehicle]:
        return [v for v in self.list_vehicles() if v.has_contact]

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        with self._lock:
            return self._load(vehicle_id).vehicle

    def list_schedules_for_vehicle(self, vehicle_id: str) -> List[ServiceSchedule]:
        """Schedules ordered by due date (undated last), then by name."""
        with self._lock:
            schedules = self._load(vehicle_id).schedules
        return sorted(
            schedules,
            key=lambda s: (
                parse_date(s.next_due_date) is None,
                parse_date(s.next_due_date) or date.min,
                s.service_name,
            ),
        )

    def get_schedule(self, schedule_id: str) -> ServiceSchedule:
        with self._lock:
            return self._find_schedule(schedule_id)[1]

    def list_service_logs(self, vehicle_id: str) -> List[ServiceLog]:
        """Completed services, newest first."""
        with self._lock:
            history = self._load(vehicle_id).history
        return sorted(
            history,
            key=lambda h: (h.service_date or "", h.created_at or ""),
            reverse=True,
        )

    # -- vehicles ----------------------------------------------------------

    def create_vehicle(
        self,
        make: str,
        model: str,
        year: Optional[int] = None,
        vin: Optional[str] = None,
        contact_email: Optional[str] = None,
        current_mileage: Optional[float] = None,
        vehicle_id: Optional[str] = None,
        templates: Iterable[ScheduleTemplate] = DEFAULT_SERVICE_TEMPLATES,
        now: Optional[datetime] = None,
    ) -> Vehicle:
        """Create a vehicle and its initial schedules."""
        now = now or datetime.now(timezone.utc)
        mileage = parse_mileage(current_mileage)
        vehicle = Vehicle(
            id=vehicle_id or _slugify(f"{year or ''} {make} {model}") or str(uuid.uuid4()),
            make=make,
            model=model,
            year=year,
            vin=vin or None,
            contact_email=(contact_email or "").strip() or None,
            current_mileage=mileage,
            last_mileage_confirmed_at=to_iso(now) if mileage is not None else None,
            created_at=to_iso(now),
        )
        with self._lock:
            if self._has(vehicle.id):
                raise RepositoryError(f"Vehicle '{vehicle.id}' already exists")
            schedules = materialize_schedules(vehicle, templates, now.date())
            self._save(VehicleRecord(vehicle=vehicle, schedules=schedules))
        logger.info("Created vehicle %s with %d schedules", vehicle.id, len(schedules))
        return vehicle

    def ensure_schedules_exist(
        self,
        vehicle_id: str,
        templates: Iterable[ScheduleTemplate] = DEFAULT_SERVICE_TEMPLATES,
    ) -> List[ServiceSchedule]:
        """Backfill schedules for a vehicle that has none, from its creation date."""
        with self._lock:
            record = self._load(vehicle_id)
            if not record.schedules:
                reference = parse_date(record.vehicle.created_at) or date.today()
                record.schedules = materialize_schedules(record.vehicle, templates, reference)
                self._save(record)
                logger.info(
                    "Backfilled %d schedules for vehicle %s", len(record.schedules), vehicle_id
                )
            return list(record.schedules)

    def update_vehicle_mileage(
        self, vehicle_id: str, mileage: float, now: Optional[datetime] = None
    ) -> Vehicle:
        """
        Set the odometer reading to any non-negative value.

        Stamps the confirmation time and clears the mileage-reminder
        bookkeeping so the staleness clock starts over.
        """
        if isinstance(mileage, bool) or not isinstance(mileage, (int, float)) or mileage < 0:
            raise ValueError("Please enter a valid non-negative mileage.")
        now = now or datetime.now(timezone.utc)
        with self._lock:
            record = self._load(vehicle_id)
            self._confirm_mileage(record.vehicle, mileage, now)
            self._save(record)
            return record.vehicle

    @staticmethod
    def _confirm_mileage(vehicle: Vehicle, mileage: float, now: datetime) -> None:
        vehicle.current_mileage = mileage
        vehicle.last_mileage_confirmed_at = to_iso(now)
        vehicle.last_mileage_reminder_at = None

    # -- schedules and service logs ----------------------------------------

    def update_schedule_due_date(
        self, schedule_id: str, due_date: Union[str, date]
    ) -> ServiceSchedule:
        parsed = parse_date(due_date)
        if parsed is None:
            raise ValueError("Please enter a valid due date.")
        with self._lock:
            record, schedule = self._find_schedule(schedule_id)
            schedule.next_due_date = parsed.isoformat()
            self._save(record)
            return schedule

    def record_completed_service(
        self,
        vehicle_id: str,
        schedule_id: str,
        service_date: Union[str, date],
        mileage: Optional[float] = None,
        cost: Optional[float] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ServiceLog:
        """
        Log a completed scheduled service and roll its schedule forward.

        A logged mileage above the one on record raises the vehicle's
        mileage; a lower one leaves it alone.
        """
        now = now or datetime.now(timezone.utc)
        mileage = parse_mileage(mileage)
        with self._lock:
            record = self._load(vehicle_id)
            schedule = next((s for s in record.schedules if s.id == schedule_id), None)
            if schedule is None:
                raise NotFoundError("Schedule not found for service log.")

            schedule.record_completion(service_date, mileage)
            log = ServiceLog(
                id=str(uuid.uuid4()),
                vehicle_id=vehicle_id,
                service_name=schedule.service_name,
                service_date=schedule.last_completed_date,
                schedule_id=schedule.id,
                service_code=schedule.service_code,
                mileage=mileage,
                cost_cents=cost_to_cents(cost),
                notes=_clean_notes(notes),
                created_at=to_iso(now),
            )
            self._append_log(record, log, now)
        return log

    def record_custom_service(
        self,
        vehicle_id: str,
        service_name: str,
        service_date: Union[str, date],
        mileage: Optional[float] = None,
        cost: Optional[float] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ServiceLog:
        """Log an ad-hoc service that belongs to no schedule."""
        name = (service_name or "").strip()
        if not name:
            raise ValueError("Service name is required for custom logs.")
        parsed = parse_date(service_date)
        if parsed is None:
            raise ValueError(f"Invalid service date: {service_date!r}")
        now = now or datetime.now(timezone.utc)
        mileage = parse_mileage(mileage)
        with self._lock:
            record = self._load(vehicle_id)
            log = ServiceLog(
                id=str(uuid.uuid4()),
                vehicle_id=vehicle_id,
                service_name=name,
                service_date=parsed.isoformat(),
                mileage=mileage,
                cost_cents=cost_to_cents(cost),
                notes=_clean_notes(notes),
                created_at=to_iso(now),
            )
            self._append_log(record, log, now)
        return log

    def _append_log(self, record: VehicleRecord, log: ServiceLog, now: datetime) -> None:
        record.history.append(log)
        vehicle = record.vehicle
        if log.mileage is not None and (
            vehicle.current_mileage is None or log.mileage > vehicle.current_mileage
        ):
            self._confirm_mileage(vehicle, log.mileage, now)
        self._save(record)
        logger.info("Logged %s for vehicle %s", log.service_name, vehicle.id)

    # -- reminder bookkeeping ----------------------------------------------

    def record_schedule_reminder_sent(
        self, schedule_id: str, status: MaintenanceStatus, sent_at: datetime
    ) -> None:
        with self._lock:
            record, schedule = self._find_schedule(schedule_id)
            schedule.mark_reminder_sent(status, to_iso(sent_at))
            self._save(record)

    def record_mileage_reminder_sent(self, vehicle_id: str, sent_at: datetime) -> None:
        with self._lock:
            record = self._load(vehicle_id)
            record.vehicle.last_mileage_reminder_at = to_iso(sent_at)
            self._save(record)


def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


class YamlRepository(Repository):
    """One `<vehicle id>.yaml` file per vehicle in a data directory."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        super().__init__(store_lock(str(self.data_dir.resolve())))

    def path_for(self, vehicle_id: str) -> Path:
        return self.data_dir / f"{vehicle_id}.yaml"

    def _has(self, vehicle_id: str) -> bool:
        return self.path_for(vehicle_id).exists()

    def _vehicle_ids(self) -> List[str]:
        if not self.data_dir.is_dir():
            raise RepositoryError(f"Data directory not found: {self.data_dir}")
        return sorted(p.stem for p in self.data_dir.glob("*.yaml"))

    def _load(self, vehicle_id: str) -> VehicleRecord:
        path = self.path_for(vehicle_id)
        if not path.exists():
            raise NotFoundError(f"Vehicle '{vehicle_id}' not found")
        return load_record(path)

    def _save(self, record: VehicleRecord) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        save_record(self.path_for(record.vehicle.id), record)


class MemoryRepository(Repository):
    """Records kept in memory; handy for tests and previews."""

    def __init__(self, records: Optional[Iterable[VehicleRecord]] = None):
        super().__init__()
        self._records: Dict[str, VehicleRecord] = {}
        for record in records or []:
            self._save(record)

    def _vehicle_ids(self) -> List[str]:
        return list(self._records)

    def _load(self, vehicle_id: str) -> VehicleRecord:
        try:
            return copy.deepcopy(self._records[vehicle_id])
        except KeyError:
            raise NotFoundError(f"Vehicle '{vehicle_id}' not found") from None

    def _save(self, record: VehicleRecord) -> None:
        self._records[record.vehicle.id] = copy.deepcopy(record)
