"""Shared fixtures: a recording mailer and in-memory vehicle records."""

import itertools
import threading
import time
from datetime import datetime, timezone

import pytest

from maintenance import (
    MailerError,
    MemoryRepository,
    ServiceSchedule,
    Vehicle,
    VehicleRecord,
)
from maintenance.mailer import Mailer

NOW = datetime(2024, 6, 20, 12, 0, tzinfo=timezone.utc)


class FakeMailer(Mailer):
    """Records deliveries; fails for chosen schedule/vehicle ids."""

    def __init__(self, fail_ids=(), on_send=None, delay=0):
        self.fail_ids = set(fail_ids)
        self.on_send = on_send
        self.delay = delay
        self.sent = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _record(self, kind, key, recipient, context_url):
        if key in self.fail_ids:
            raise MailerError(f"rejected {key}")
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            delivery_id = f"msg-{next(self._ids)}"
            self.sent.append((kind, key, recipient, context_url))
        if self.on_send:
            self.on_send(kind, key)
        return delivery_id

    def send_schedule_reminder(self, recipient, vehicle, upcoming, context_url):
        return self._record("schedule", upcoming.schedule.id, recipient, context_url)

    def send_mileage_reminder(self, recipient, vehicle, context_url):
        return self._record("mileage", vehicle.id, recipient, context_url)

    def keys(self, kind="schedule"):
        return [key for k, key, _, _ in self.sent if k == kind]


def make_vehicle(vehicle_id="brz", **kwargs):
    defaults = dict(
        make="Subaru",
        model="BRZ",
        year=2015,
        contact_email="owner@example.com",
        current_mileage=45210,
        last_mileage_confirmed_at="2024-06-15T09:00:00+00:00",
        created_at="2024-01-01T00:00:00+00:00",
    )
    defaults.update(kwargs)
    return Vehicle(vehicle_id, **defaults)


def make_schedule(schedule_id, vehicle_id="brz", **kwargs):
    defaults = dict(
        service_code=schedule_id,
        service_name=schedule_id.replace("-", " ").title(),
    )
    defaults.update(kwargs)
    return ServiceSchedule(schedule_id, vehicle_id, **defaults)


def standard_record(vehicle_id="brz", **vehicle_kwargs):
    """One due-soon, one on-track and one recently reminded overdue schedule."""
    return VehicleRecord(
        vehicle=make_vehicle(vehicle_id, **vehicle_kwargs),
        schedules=[
            make_schedule(
                f"{vehicle_id}-oil",
                vehicle_id,
                service_name="Oil Change",
                interval_months=6,
                interval_miles=5000,
                reminder_lead_days=14,
                reminder_lead_miles=500,
                next_due_date="2024-07-01",
                next_due_mileage=50000,
            ),
            make_schedule(
                f"{vehicle_id}-tires",
                vehicle_id,
                service_name="Tire Rotation",
                reminder_lead_days=14,
                reminder_lead_miles=500,
                next_due_date="2024-12-01",
                next_due_mileage=60000,
            ),
            make_schedule(
                f"{vehicle_id}-brakes",
                vehicle_id,
                service_name="Brake Inspection",
                reminder_lead_days=30,
                next_due_date="2024-06-01",
                last_reminder_sent_at="2024-06-20T06:00:00+00:00",
                last_reminder_status="overdue",
            ),
        ],
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def repo():
    return MemoryRepository([standard_record()])
