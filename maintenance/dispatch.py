"""
Reminder dispatch: one pass over every vehicle with a reminder contact.

For each vehicle the pass evaluates its schedules, emails a reminder for each
schedule that needs one, then decides on a mileage-confirmation nudge. The
schedule's (or vehicle's) bookkeeping is written only after the mailer
accepted the message, and the read-decide-send-write sequence for a single
schedule or vehicle runs under a lock keyed on its id, so overlapping passes
in one process cannot both deliver the same reminder.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Hashable, List, Optional
from urllib.parse import urljoin

from .calculations import evaluate_schedule, get_upcoming_services
from .config import ReminderSettings
from .decisions import (
    SkipReason,
    should_send_mileage_reminder,
    should_send_schedule_reminder,
)
from .errors import MailerError, RepositoryError
from .mailer import Mailer
from .outcomes import (
    MILEAGE,
    SCHEDULE,
    Failed,
    ReminderOutcome,
    RunReport,
    Sent,
    Skipped,
)
from .repository import Repository
from .upcoming import UpcomingService
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

SERVICE_PATH = "/service/new"
MILEAGE_PATH = "/vehicle/mileage"


class KeyedLocks:
    """A lock per key, created on first use and dropped when nobody holds or awaits it."""

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, holders and waiters]
        self._locks: Dict[Hashable, list] = {}

    @contextmanager
    def hold(self, key: Hashable):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if not entry[1]:
                    del self._locks[key]


# Shared by every dispatcher in the process.
_default_locks = KeyedLocks()


def context_url(base_url: str, path: str) -> Optional[str]:
    if not base_url:
        return None
    return urljoin(base_url, path)


class ReminderDispatcher:
    """Runs reminder passes against a repository and a mailer."""

    def __init__(
        self,
        repository: Repository,
        mailer: Mailer,
        settings: Optional[ReminderSettings] = None,
        locks: Optional[KeyedLocks] = None,
        max_workers: int = 1,
    ):
        self.repository = repository
        self.mailer = mailer
        self.settings = settings or ReminderSettings()
        self.locks = locks or _default_locks
        self.max_workers = max(1, max_workers)

    def run(
        self,
        now: Optional[datetime] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> RunReport:
        """
        Run one full pass and return its report.

        Raises RepositoryError only when the candidate vehicles cannot be
        listed; every other failure is recorded in the report. Once
        stop_event is set, items already in flight finish and no new
        reminders are sent.
        """
        now = now or datetime.now(timezone.utc)
        stop_event = stop_event or threading.Event()

        vehicles = self.repository.list_vehicles_with_contact()
        logger.info("Reminder run started: %d vehicles", len(vehicles))

        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                per_vehicle = list(
                    pool.map(lambda v: self._process_vehicle(v, now, stop_event), vehicles)
                )
        else:
            per_vehicle = [self._process_vehicle(v, now, stop_event) for v in vehicles]

        report = RunReport(cancelled=stop_event.is_set())
        for outcomes in per_vehicle:
            if outcomes is None:
                continue
            report.processed_vehicles += 1
            for outcome in outcomes:
                report.add(outcome)

        logger.info(
            "Reminder run finished: vehicles=%d sent=%d skipped=%d errors=%d "
            "mileage_sent=%d mileage_skipped=%d mileage_errors=%d cancelled=%s",
            report.processed_vehicles,
            report.sent_count,
            report.skipped_count,
            report.error_count,
            report.mileage_sent_count,
            report.mileage_skipped_count,
            report.mileage_error_count,
            report.cancelled,
        )
        return report

    def _process_vehicle(
        self, vehicle: Vehicle, now: datetime, stop_event: threading.Event
    ) -> Optional[List[ReminderOutcome]]:
        """Handle one vehicle. Returns None when the run was stopped first."""
        if stop_event.is_set():
            return None

        outcomes = []
        recipient = (vehicle.contact_email or "").strip()
        if not recipient:
            outcomes.append(
                ReminderOutcome(
                    kind=SCHEDULE,
                    vehicle_id=vehicle.id,
                    result=Skipped(SkipReason.MISSING_CONTACT_EMAIL),
                )
            )
            return outcomes

        try:
            schedules = self.repository.list_schedules_for_vehicle(vehicle.id)
        except RepositoryError as e:
            logger.warning("Could not list schedules for vehicle %s: %s", vehicle.id, e)
            outcomes.append(
                ReminderOutcome(kind=SCHEDULE, vehicle_id=vehicle.id, result=Failed(str(e)))
            )
            schedules = []

        for upcoming in get_upcoming_services(schedules, vehicle, now):
            if not upcoming.is_due:
                continue
            if stop_event.is_set():
                return outcomes
            outcomes.append(self._dispatch_schedule(vehicle, recipient, upcoming, now))

        if stop_event.is_set():
            return outcomes
        outcomes.append(self._dispatch_mileage(vehicle, recipient, now))
        return outcomes

    def _dispatch_schedule(
        self, vehicle: Vehicle, recipient: str, upcoming: UpcomingService, now: datetime
    ) -> ReminderOutcome:
        schedule = upcoming.schedule

        def outcome(result, status=upcoming.status):
            return ReminderOutcome(
                kind=SCHEDULE,
                vehicle_id=vehicle.id,
                schedule_id=schedule.id,
                recipient=recipient,
                status=status,
                result=result,
            )

        decision = should_send_schedule_reminder(
            schedule, upcoming.status, now, self.settings.repeat_hours
        )
        if not decision.send:
            logger.debug("Skipping schedule %s: %s", schedule.id, decision.reason.value)
            return outcome(Skipped(decision.reason))

        with self.locks.hold((SCHEDULE, schedule.id)):
            # Another pass may have sent this reminder since our snapshot.
            try:
                fresh = self.repository.get_schedule(schedule.id)
            except RepositoryError as e:
                logger.warning("Could not reload schedule %s: %s", schedule.id, e)
                return outcome(Failed(str(e)))

            current = evaluate_schedule(fresh, vehicle.current_mileage, now)
            decision = should_send_schedule_reminder(
                fresh, current.status, now, self.settings.repeat_hours
            )
            if not decision.send:
                logger.debug("Skipping schedule %s: %s", schedule.id, decision.reason.value)
                return outcome(Skipped(decision.reason), current.status)

            try:
                delivery_id = self.mailer.send_schedule_reminder(
                    recipient,
                    vehicle,
                    current,
                    context_url(self.settings.app_base_url, SERVICE_PATH),
                )
            except MailerError as e:
                logger.warning("Reminder for schedule %s failed: %s", schedule.id, e)
                return outcome(Failed(str(e)), current.status)
            except Exception as e:
                logger.exception("Mailer crashed on schedule %s", schedule.id)
                return outcome(Failed(f"{type(e).__name__}: {e}"), current.status)

            try:
                self.repository.record_schedule_reminder_sent(
                    schedule.id, current.status, now
                )
            except RepositoryError as e:
                logger.warning(
                    "Reminder %s for schedule %s sent but not recorded: %s",
                    delivery_id,
                    schedule.id,
                    e,
                )
                return outcome(
                    Failed(f"Sent as {delivery_id} but not recorded: {e}"), current.status
                )

        logger.info(
            "Sent %s reminder for schedule %s to %s (%s)",
            current.status.value,
            schedule.id,
            recipient,
            delivery_id,
        )
        return outcome(Sent(delivery_id), current.status)

    def _dispatch_mileage(
        self, vehicle: Vehicle, recipient: str, now: datetime
    ) -> ReminderOutcome:
        def outcome(result):
            return ReminderOutcome(
                kind=MILEAGE, vehicle_id=vehicle.id, recipient=recipient, result=result
            )

        decision = should_send_mileage_reminder(
            vehicle, now, self.settings.mileage_stale_days, self.settings.repeat_hours
        )
        if not decision.send:
            logger.debug("Skipping mileage reminder for %s: %s", vehicle.id, decision.reason.value)
            return outcome(Skipped(decision.reason))

        with self.locks.hold((MILEAGE, vehicle.id)):
            try:
                fresh = self.repository.get_vehicle(vehicle.id)
            except RepositoryError as e:
                logger.warning("Could not reload vehicle %s: %s", vehicle.id, e)
                return outcome(Failed(str(e)))

            decision = should_send_mileage_reminder(
                fresh, now, self.settings.mileage_stale_days, self.settings.repeat_hours
            )
            if not decision.send:
                return outcome(Skipped(decision.reason))

            try:
                delivery_id = self.mailer.send_mileage_reminder(
                    recipient, fresh, context_url(self.settings.app_base_url, MILEAGE_PATH)
                )
            except MailerError as e:
                logger.warning("Mileage reminder for vehicle %s failed: %s", vehicle.id, e)
                return outcome(Failed(str(e)))
            except Exception as e:
                logger.exception("Mailer crashed on mileage reminder for vehicle %s", vehicle.id)
                return outcome(Failed(f"{type(e).__name__}: {e}"))

            try:
                self.repository.record_mileage_reminder_sent(vehicle.id, now)
            except RepositoryError as e:
                logger.warning(
                    "Mileage reminder %s for vehicle %s sent but not recorded: %s",
                    delivery_id,
                    vehicle.id,
                    e,
                )
                return outcome(Failed(f"Sent as {delivery_id} but not recorded: {e}"))

        logger.info("Sent mileage reminder for vehicle %s to %s (%s)", vehicle.id, recipient, delivery_id)
        return outcome(Sent(delivery_id))


def run_reminder_pass(
    repository: Repository,
    mailer: Mailer,
    settings: ReminderSettings,
    now: Optional[datetime] = None,
    stop_event: Optional[threading.Event] = None,
) -> RunReport:
    """Trigger entrypoint: run one dispatch pass and return its report."""
    return ReminderDispatcher(repository, mailer, settings).run(now=now, stop_event=stop_event)
