"""Flask web application for vehicle maintenance tracking."""

import hmac
import logging
import os
from datetime import datetime, timezone

from flask import Flask, current_app, jsonify, request

from maintenance import (
    ConfigError,
    MaintenanceStatus,
    NotFoundError,
    ReminderSettings,
    RepositoryError,
    SmtpMailer,
    YamlRepository,
    build_timeline,
    get_last_service,
    get_upcoming_services,
    pick_next_due_service,
    run_reminder_pass,
)
from maintenance.formatting import reminder_summary

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-prod")


def get_settings() -> ReminderSettings:
    """Settings from app config if set, else from the environment."""
    return current_app.config.get("REMINDER_SETTINGS") or ReminderSettings.from_env()


def get_repository(settings: ReminderSettings):
    return current_app.config.get("REPOSITORY") or YamlRepository(settings.data_dir)


def get_mailer(settings: ReminderSettings):
    return current_app.config.get("MAILER") or SmtpMailer.from_settings(settings)


def service_to_dict(svc) -> dict:
    schedule = svc.schedule
    return {
        "scheduleId": schedule.id,
        "serviceCode": schedule.service_code,
        "serviceName": schedule.service_name,
        "status": svc.status.value,
        "daysUntilDue": svc.days_until_due,
        "milesUntilDue": svc.miles_until_due,
        "dueDateLabel": svc.due_date_label,
        "nextDueMileage": schedule.next_due_mileage,
        "summary": reminder_summary(svc.days_until_due, svc.miles_until_due),
    }


@app.errorhandler(NotFoundError)
def handle_not_found(e):
    return jsonify({"error": str(e)}), 404


@app.route("/api/reminders/trigger", methods=["POST"])
def trigger_reminders():
    """Run one reminder pass; called by cron with a bearer secret."""
    settings = get_settings()
    if not settings.cron_secret:
        return jsonify({"error": "Missing REMINDER_CRON_SECRET environment variable."}), 500

    auth_header = request.headers.get("Authorization", "")
    if not hmac.compare_digest(auth_header, f"Bearer {settings.cron_secret}"):
        return "Unauthorized", 401

    try:
        settings.require("sender")
        mailer = get_mailer(settings)
    except ConfigError as e:
        return jsonify({"error": str(e)}), 500

    try:
        report = run_reminder_pass(get_repository(settings), mailer, settings)
    except RepositoryError as e:
        logger.error("Reminder run aborted: %s", e)
        return jsonify({"error": f"Could not list vehicles: {e}"}), 500

    return jsonify(report.to_dict())


@app.route("/api/vehicles/<vehicle_id>/status")
def vehicle_status(vehicle_id: str):
    """Evaluated schedules, grouped counts, and the next service."""
    settings = get_settings()
    repo = get_repository(settings)
    vehicle = repo.get_vehicle(vehicle_id)
    schedules = repo.ensure_schedules_exist(vehicle_id)
    now = datetime.now(timezone.utc)

    all_status = get_upcoming_services(schedules, vehicle, now)
    next_svc = pick_next_due_service(all_status)
    last_log = get_last_service(repo.list_service_logs(vehicle_id))

    status_counts = {
        status.value: sum(1 for s in all_status if s.status == status)
        for status in MaintenanceStatus
    }
    all_status.sort(key=lambda s: (s.status.urgency, s.schedule.service_name))

    return jsonify(
        {
            "vehicle": {
                "id": vehicle.id,
                "name": vehicle.name,
                "currentMileage": vehicle.current_mileage,
            },
            "statusCounts": status_counts,
            "nextService": service_to_dict(next_svc) if next_svc else None,
            "lastService": {
                "serviceName": last_log.service_name,
                "serviceDate": last_log.service_date,
                "mileage": last_log.mileage,
            }
            if last_log
            else None,
            "services": [service_to_dict(s) for s in all_status],
        }
    )


@app.route("/api/vehicles/<vehicle_id>/timeline")
def vehicle_timeline(vehicle_id: str):
    """Upcoming services followed by completed ones."""
    settings = get_settings()
    repo = get_repository(settings)
    vehicle = repo.get_vehicle(vehicle_id)
    schedules = repo.ensure_schedules_exist(vehicle_id)
    entries = build_timeline(
        schedules, repo.list_service_logs(vehicle_id), vehicle, datetime.now(timezone.utc)
    )
    return jsonify([e.to_dict() for e in entries])


@app.route("/api/vehicles/<vehicle_id>/mileage", methods=["POST"])
def update_mileage(vehicle_id: str):
    """Confirm the current odometer reading."""
    settings = get_settings()
    payload = request.get_json(silent=True) or request.form
    raw = str(payload.get("mileage", "")).strip()
    if not raw:
        return jsonify({"error": "Please enter your current mileage."}), 400

    try:
        miles = int(raw)
        vehicle = get_repository(settings).update_vehicle_mileage(vehicle_id, miles)
    except ValueError:
        return jsonify({"error": "Please enter a valid non-negative mileage."}), 400

    return jsonify({"id": vehicle.id, "currentMileage": vehicle.current_mileage})


if __name__ == "__main__":
    # Using 5001 to avoid conflict with macOS AirPlay Receiver on 5000
    app.run(debug=True, host="0.0.0.0", port=5001)
