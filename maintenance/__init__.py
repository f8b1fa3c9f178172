"""
Vehicle maintenance scheduling and reminders.

This package provides:
- MaintenanceStatus: Urgency levels (OK, DUE_SOON, OVERDUE)
- Vehicle, ServiceSchedule, ServiceLog: Stored records
- UpcomingService: Calculated schedule status
- evaluate_schedule / pick_next_due_service / build_timeline: Read-side views
- should_send_*_reminder: Reminder decisions
- ReminderDispatcher / run_reminder_pass: Reminder delivery runs
- Repository / YamlRepository / MemoryRepository: Storage
"""

from .status import MaintenanceStatus
from .vehicle import Vehicle
from .schedule import ServiceSchedule
from .service_log import ServiceLog
from .upcoming import UpcomingService
from .calculations import (
    calc_next_due_date,
    calc_next_due_mileage,
    check_status,
    evaluate_schedule,
    get_upcoming_services,
    parse_date,
    parse_timestamp,
)
from .selection import get_last_service, pick_next_due_service
from .timeline import TimelineEntry, build_timeline, sort_timeline
from .decisions import (
    ReminderDecision,
    SkipReason,
    should_send_mileage_reminder,
    should_send_schedule_reminder,
)
from .config import ReminderSettings, parse_positive_int
from .errors import ConfigError, MailerError, MaintenanceError, NotFoundError, RepositoryError
from .outcomes import Failed, ReminderOutcome, RunReport, Sent, Skipped
from .templates import DEFAULT_SERVICE_TEMPLATES, ScheduleTemplate
from .loader import VehicleRecord, load_record, save_record
from .repository import MemoryRepository, Repository, YamlRepository
from .mailer import Mailer, SmtpMailer
from .dispatch import ReminderDispatcher, run_reminder_pass

__all__ = [
    "MaintenanceStatus",
    "Vehicle",
    "ServiceSchedule",
    "ServiceLog",
    "UpcomingService",
    "calc_next_due_date",
    "calc_next_due_mileage",
    "check_status",
    "evaluate_schedule",
    "get_upcoming_services",
    "parse_date",
    "parse_timestamp",
    "get_last_service",
    "pick_next_due_service",
    "TimelineEntry",
    "build_timeline",
    "sort_timeline",
    "ReminderDecision",
    "SkipReason",
    "should_send_mileage_reminder",
    "should_send_schedule_reminder",
    "ReminderSettings",
    "parse_positive_int",
    "ConfigError",
    "MailerError",
    "MaintenanceError",
    "NotFoundError",
    "RepositoryError",
    "Failed",
    "ReminderOutcome",
    "RunReport",
    "Sent",
    "Skipped",
    "DEFAULT_SERVICE_TEMPLATES",
    "ScheduleTemplate",
    "VehicleRecord",
    "load_record",
    "save_record",
    "MemoryRepository",
    "Repository",
    "YamlRepository",
    "Mailer",
    "SmtpMailer",
    "ReminderDispatcher",
    "run_reminder_pass",
]
