#!/usr/bin/env python3
"""Tests for reminder dispatch runs."""
import threading
from unittest.mock import patch

import pytest

from conftest import NOW, FakeMailer, standard_record
from maintenance import (
    MaintenanceStatus,
    MemoryRepository,
    ReminderDispatcher,
    ReminderSettings,
    RepositoryError,
    SmtpMailer,
    run_reminder_pass,
)
from maintenance.dispatch import KeyedLocks, context_url
from maintenance.outcomes import Sent
from maintenance.repository import to_iso


def two_vehicle_repo(**vehicle_kwargs):
    return MemoryRepository(
        [standard_record("a", **vehicle_kwargs), standard_record("b", **vehicle_kwargs)]
    )


class TestContextUrl:
    """Tests for context_url."""

    def test_joins_path(self):
        assert context_url("https://maint.example.com", "/service/new") == (
            "https://maint.example.com/service/new"
        )

    def test_no_base(self):
        assert context_url("", "/service/new") is None


class TestKeyedLocks:
    """Tests for KeyedLocks."""

    def contend(self, locks, key):
        acquired = threading.Event()

        def contender():
            with locks.hold(key):
                acquired.set()

        thread = threading.Thread(target=contender)
        thread.start()
        return thread, acquired

    def test_same_key_excludes(self):
        locks = KeyedLocks()
        with locks.hold("oil"):
            thread, acquired = self.contend(locks, "oil")
            assert not acquired.wait(0.05)
        thread.join(1)
        assert acquired.is_set()

    def test_other_keys_independent(self):
        locks = KeyedLocks()
        with locks.hold("oil"):
            thread, acquired = self.contend(locks, "tires")
            assert acquired.wait(1)
        thread.join(1)

    def test_released_locks_dropped(self):
        locks = KeyedLocks()
        with locks.hold("oil"):
            thread, acquired = self.contend(locks, "oil")
            assert not acquired.wait(0.05)
            assert len(locks._locks) == 1
        thread.join(1)
        assert acquired.is_set()
        assert locks._locks == {}


class TestSingleRun:
    """Tests for one pass over one vehicle."""

    def test_report(self, repo, mailer, now):
        report = ReminderDispatcher(repo, mailer).run(now=now)
        assert report.processed_vehicles == 1
        assert not report.cancelled
        assert report.to_dict()["sent"] == [
            {
                "vehicleId": "brz",
                "scheduleId": "brz-oil",
                "email": "owner@example.com",
                "status": "due_soon",
                "messageId": "msg-1",
            }
        ]
        assert report.to_dict()["skipped"] == [
            {"vehicleId": "brz", "scheduleId": "brz-brakes", "reason": "recently_sent"}
        ]
        assert report.to_dict()["mileageSkipped"] == [
            {"vehicleId": "brz", "reason": "within_threshold"}
        ]
        assert report.error_count == 0
        assert report.mileage_sent_count == 0

    def test_on_track_schedules_not_reported(self, repo, mailer, now):
        report = ReminderDispatcher(repo, mailer).run(now=now)
        reported = [o.schedule_id for o in report.sent + report.skipped + report.errors]
        assert "brz-tires" not in reported

    def test_bookkeeping_written_after_send(self, repo, mailer, now):
        ReminderDispatcher(repo, mailer).run(now=now)
        oil = repo.get_schedule("brz-oil")
        assert oil.last_reminder_sent_at == to_iso(now)
        assert oil.last_reminder_status.value == "due_soon"

    def test_context_url_passed(self, repo, mailer, now):
        ReminderDispatcher(repo, mailer).run(now=now)
        assert mailer.sent[0][3] == "http://localhost:5001/service/new"

    def test_second_run_sends_nothing(self, repo, mailer, now):
        dispatcher = ReminderDispatcher(repo, mailer)
        dispatcher.run(now=now)
        report = dispatcher.run(now=now)
        assert report.sent_count == 0
        assert report.skipped_count == 2
        assert mailer.keys() == ["brz-oil"]

    def test_status_change_resends(self, mailer, now):
        record = standard_record()
        record.schedules[2].last_reminder_status = MaintenanceStatus.DUE_SOON
        report = ReminderDispatcher(MemoryRepository([record]), mailer).run(now=now)
        assert sorted(mailer.keys()) == ["brz-brakes", "brz-oil"]
        assert report.sent_count == 2

    def test_stale_mileage_sent(self, mailer, now):
        repo = MemoryRepository([standard_record(last_mileage_confirmed_at=None)])
        report = ReminderDispatcher(repo, mailer).run(now=now)
        assert report.mileage_sent_count == 1
        assert mailer.keys("mileage") == ["brz"]
        assert mailer.sent[-1][3] == "http://localhost:5001/vehicle/mileage"
        assert repo.get_vehicle("brz").last_mileage_reminder_at == to_iso(now)

    def test_run_reminder_pass(self, repo, mailer, now):
        report = run_reminder_pass(repo, mailer, ReminderSettings(), now=now)
        assert report.sent_count == 1


class TestFailureIsolation:
    """Failures of one item never stop the others."""

    def test_mailer_failure_leaves_bookkeeping(self, now):
        repo = two_vehicle_repo()
        mailer = FakeMailer(fail_ids={"a-oil"})
        report = ReminderDispatcher(repo, mailer).run(now=now)

        assert report.to_dict()["errors"] == [
            {"vehicleId": "a", "scheduleId": "a-oil", "error": "rejected a-oil"}
        ]
        assert [o.schedule_id for o in report.sent] == ["b-oil"]
        assert repo.get_schedule("a-oil").last_reminder_sent_at is None
        assert repo.get_schedule("a-oil").last_reminder_status is None

    def test_failed_item_retried_next_run(self, now):
        repo = two_vehicle_repo()
        ReminderDispatcher(repo, FakeMailer(fail_ids={"a-oil"})).run(now=now)
        mailer = FakeMailer()
        ReminderDispatcher(repo, mailer).run(now=now)
        assert mailer.keys() == ["a-oil"]

    def test_write_back_failure_reported(self, mailer, now):
        class NoWriteRepository(MemoryRepository):
            def record_schedule_reminder_sent(self, schedule_id, status, sent_at):
                raise RepositoryError("disk full")

        report = ReminderDispatcher(NoWriteRepository([standard_record()]), mailer).run(now=now)
        assert report.sent_count == 0
        assert report.errors[0].result.error == "Sent as msg-1 but not recorded: disk full"

    def test_schedule_listing_failure_is_per_vehicle(self, mailer, now):
        class BrokenRepository(MemoryRepository):
            def list_schedules_for_vehicle(self, vehicle_id):
                if vehicle_id == "a":
                    raise RepositoryError("corrupt file")
                return super().list_schedules_for_vehicle(vehicle_id)

        repo = BrokenRepository([standard_record("a"), standard_record("b")])
        report = ReminderDispatcher(repo, mailer).run(now=now)
        assert report.processed_vehicles == 2
        assert report.to_dict()["errors"] == [
            {"vehicleId": "a", "scheduleId": "n/a", "error": "corrupt file"}
        ]
        assert mailer.keys() == ["b-oil"]
        assert report.mileage_skipped_count == 2

    def test_vehicle_listing_failure_is_fatal(self, mailer, now):
        class DownRepository(MemoryRepository):
            def list_vehicles(self):
                raise RepositoryError("store unavailable")

        with pytest.raises(RepositoryError):
            ReminderDispatcher(DownRepository(), mailer).run(now=now)
        assert mailer.sent == []

    def test_missing_contact(self, mailer, now):
        class EveryoneRepository(MemoryRepository):
            def list_vehicles_with_contact(self):
                return self.list_vehicles()

        repo = EveryoneRepository([standard_record(contact_email="  ")])
        report = ReminderDispatcher(repo, mailer).run(now=now)
        assert report.to_dict()["skipped"] == [
            {"vehicleId": "brz", "scheduleId": "n/a", "reason": "missing_contact_email"}
        ]
        assert mailer.sent == []

    def test_malformed_address_isolated(self, now):
        repo = MemoryRepository(
            [
                standard_record("a", contact_email="owner@example.com\nBcc: evil@example.com"),
                standard_record("b"),
            ]
        )
        mailer = SmtpMailer("localhost", "maint@example.com")
        with patch("maintenance.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            report = ReminderDispatcher(repo, mailer).run(now=now)

        assert report.processed_vehicles == 2
        assert [o.schedule_id for o in report.errors] == ["a-oil"]
        assert [o.schedule_id for o in report.sent] == ["b-oil"]
        assert server.send_message.call_count == 1
        assert repo.get_schedule("a-oil").last_reminder_sent_at is None

    def test_unexpected_mailer_error_isolated(self, now):
        class CrashingMailer(FakeMailer):
            def send_schedule_reminder(self, recipient, vehicle, upcoming, context_url):
                if vehicle.id == "a":
                    raise RuntimeError("template exploded")
                return super().send_schedule_reminder(recipient, vehicle, upcoming, context_url)

        mailer = CrashingMailer()
        report = ReminderDispatcher(two_vehicle_repo(), mailer).run(now=now)
        assert report.to_dict()["errors"] == [
            {"vehicleId": "a", "scheduleId": "a-oil", "error": "RuntimeError: template exploded"}
        ]
        assert mailer.keys() == ["b-oil"]

    def test_vehicles_without_contact_not_candidates(self, mailer, now):
        repo = MemoryRepository([standard_record("a"), standard_record("b", contact_email=None)])
        report = ReminderDispatcher(repo, mailer).run(now=now)
        assert report.processed_vehicles == 1


class TestCancellation:
    """Tests for stopping a run."""

    def test_stopped_before_start(self, repo, mailer, now):
        stop = threading.Event()
        stop.set()
        report = ReminderDispatcher(repo, mailer).run(now=now, stop_event=stop)
        assert report.cancelled
        assert report.processed_vehicles == 0
        assert mailer.sent == []

    def test_stop_after_first_send(self, now):
        stop = threading.Event()
        mailer = FakeMailer(on_send=lambda kind, key: stop.set())
        repo = two_vehicle_repo()
        report = ReminderDispatcher(repo, mailer).run(now=now, stop_event=stop)

        assert report.cancelled
        assert mailer.keys() == ["a-oil"]
        assert report.processed_vehicles == 1
        assert report.mileage_sent_count + report.mileage_skipped_count == 0
        assert repo.get_schedule("a-oil").last_reminder_sent_at == to_iso(now)
        assert repo.get_schedule("b-oil").last_reminder_sent_at is None


class TestConcurrency:
    """Overlapping runs never deliver the same reminder twice."""

    def test_stale_snapshot_rechecked(self, repo, now, monkeypatch):
        """A run that listed schedules before another run's write still skips."""
        stale = repo.list_schedules_for_vehicle("brz")
        first = FakeMailer()
        ReminderDispatcher(repo, first).run(now=now)

        monkeypatch.setattr(repo, "list_schedules_for_vehicle", lambda vehicle_id: stale)
        second = FakeMailer()
        report = ReminderDispatcher(repo, second).run(now=now)

        assert first.keys() == ["brz-oil"]
        assert second.sent == []
        assert [o.result.reason.value for o in report.skipped] == ["recently_sent", "recently_sent"]

    def test_parallel_runs_send_once(self, now):
        repo = two_vehicle_repo(last_mileage_confirmed_at=None)
        mailer = FakeMailer(delay=0.05)
        locks = KeyedLocks()
        reports = []

        def run():
            reports.append(ReminderDispatcher(repo, mailer, locks=locks).run(now=now))

        threads = [threading.Thread(target=run) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(mailer.keys()) == ["a-oil", "b-oil"]
        assert sorted(mailer.keys("mileage")) == ["a", "b"]
        assert sum(r.sent_count for r in reports) == 2
        assert sum(r.mileage_sent_count for r in reports) == 2

    def test_worker_pool_keeps_vehicle_order(self, now):
        repo = MemoryRepository([standard_record(v) for v in ("a", "b", "c", "d")])
        mailer = FakeMailer()
        report = ReminderDispatcher(repo, mailer, max_workers=4).run(now=now)
        assert report.processed_vehicles == 4
        assert [o.schedule_id for o in report.sent] == ["a-oil", "b-oil", "c-oil", "d-oil"]
        assert all(isinstance(o.result, Sent) for o in report.sent)
