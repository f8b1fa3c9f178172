#!/usr/bin/env python3
"""
Unified CLI for vehicle maintenance tracking.

Commands:
  vehicles     - List vehicles with their most urgent service
  add-vehicle  - Create a vehicle with the default schedules
  status       - Show what maintenance is due, overdue, or on track
  timeline     - Show upcoming and completed services
  log          - Record a completed service
  update-miles - Update current vehicle mileage
  set-due      - Override a schedule's next due date
  remind       - Run one reminder pass and print its report
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from tabulate import tabulate
from typing import List, Optional

from maintenance import (
    MaintenanceError,
    MaintenanceStatus,
    ReminderSettings,
    RunReport,
    SmtpMailer,
    UpcomingService,
    YamlRepository,
    build_timeline,
    get_last_service,
    get_upcoming_services,
    pick_next_due_service,
    run_reminder_pass,
    sort_timeline,
)
from maintenance.formatting import format_cost_cents, reminder_summary
from maintenance.timeline import TimelineEntry

# =============================================================================
# Formatting helpers
# =============================================================================


def format_miles(miles: Optional[float]) -> str:
    """Format mileage for display."""
    return f"{miles:,.0f}" if miles is not None else "-"


def format_cost(cost_cents: Optional[int]) -> str:
    """Format a cents amount for display."""
    return format_cost_cents(cost_cents) or "-"


def format_remaining(svc: UpcomingService) -> str:
    """Format remaining miles for display."""
    if svc.miles_until_due is None:
        return "-"
    if svc.miles_until_due < 0:
        return f"-{abs(svc.miles_until_due):,.0f}"
    return f"{svc.miles_until_due:,.0f}"


def format_time_remaining(svc: UpcomingService) -> str:
    """Format remaining time for display (e.g., '3mo 15d' or '-2mo 5d')."""
    if svc.days_until_due is None:
        return "-"

    days = abs(svc.days_until_due)
    sign = "-" if svc.days_until_due < 0 else ""
    months = days // 30
    remaining_days = days % 30
    if months > 0:
        return f"{sign}{months}mo {remaining_days}d"
    return f"{sign}{days}d"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def parse_as_of(value: Optional[str]) -> datetime:
    """Evaluation time: the given YYYY-MM-DD at midnight UTC, else now."""
    if not value:
        return datetime.now(timezone.utc)
    return datetime.combine(date.fromisoformat(value), datetime.min.time(), timezone.utc)


# =============================================================================
# Table builders
# =============================================================================


def make_status_table(services: List[UpcomingService]) -> List[List[str]]:
    """Convert evaluated schedules to table rows."""
    rows = []
    for svc in services:
        schedule = svc.schedule
        last_done = "-"
        if schedule.last_completed_date or schedule.last_completed_mileage:
            parts = []
            if schedule.last_completed_date:
                parts.append(schedule.last_completed_date)
            if schedule.last_completed_mileage:
                parts.append(f"{schedule.last_completed_mileage:,.0f}")
            last_done = " @ ".join(parts)

        rows.append(
            [
                schedule.service_name,
                last_done,
                format_miles(schedule.next_due_mileage),
                schedule.next_due_date or "-",
                format_remaining(svc),
                format_time_remaining(svc),
                schedule.id,
            ]
        )
    return rows


def make_timeline_table(entries: List[TimelineEntry]) -> List[List[str]]:
    """Convert timeline entries to table rows."""
    rows = []
    for entry in entries:
        kind = entry.status.label if entry.status else "Completed"
        rows.append(
            [
                kind,
                entry.title,
                entry.date_label or "-",
                entry.mileage_label or "-",
                entry.cost_label or "-",
                truncate(entry.notes),
            ]
        )
    return rows


def make_report_table(report: RunReport) -> List[List[str]]:
    """Flatten a run report into one row per attempted reminder."""
    rows = []
    groups = [
        ("sent", report.sent),
        ("skipped", report.skipped),
        ("error", report.errors),
        ("mileage sent", report.mileage_sent),
        ("mileage skipped", report.mileage_skipped),
        ("mileage error", report.mileage_errors),
    ]
    for label, outcomes in groups:
        for outcome in outcomes:
            d = outcome.to_dict()
            detail = d.get("messageId") or d.get("reason") or d.get("error") or "-"
            rows.append(
                [label, outcome.vehicle_id, outcome.schedule_id or "-", d.get("email", "-"), detail]
            )
    return rows


# =============================================================================
# Commands
# =============================================================================


def cmd_vehicles(args, repo: YamlRepository):
    """List vehicles with their most urgent service."""
    now = parse_as_of(args.as_of)
    rows = []
    for vehicle in repo.list_vehicles():
        upcoming = get_upcoming_services(repo.list_schedules_for_vehicle(vehicle.id), vehicle, now)
        overdue = sum(1 for s in upcoming if s.status == MaintenanceStatus.OVERDUE)
        due_soon = sum(1 for s in upcoming if s.status == MaintenanceStatus.DUE_SOON)
        next_svc = pick_next_due_service(upcoming)
        rows.append(
            [
                vehicle.id,
                vehicle.name,
                format_miles(vehicle.current_mileage),
                overdue,
                due_soon,
                next_svc.schedule.service_name if next_svc else "-",
            ]
        )

    if not rows:
        print("No vehicles found.")
        return 0

    headers = ["ID", "Vehicle", "Mileage", "Overdue", "Due Soon", "Next Service"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


def cmd_add_vehicle(args, repo: YamlRepository):
    """Create a vehicle with the default schedules."""
    vehicle = repo.create_vehicle(
        make=args.make,
        model=args.model,
        year=args.year,
        vin=args.vin,
        contact_email=args.email,
        current_mileage=args.mileage,
        vehicle_id=args.id,
    )
    print(f"Created {vehicle.name} as '{vehicle.id}'.")
    return 0


def cmd_status(args, repo: YamlRepository):
    """Show what maintenance is due, overdue, or on track."""
    now = parse_as_of(args.as_of)
    vehicle = repo.get_vehicle(args.vehicle)
    schedules = repo.ensure_schedules_exist(vehicle.id)
    statuses = get_upcoming_services(schedules, vehicle, now)

    print(f"Vehicle: {vehicle.name}")
    print(f"Current mileage: {format_miles(vehicle.current_mileage)} (as of {now.date().isoformat()})")
    last_svc = get_last_service(repo.list_service_logs(vehicle.id))
    if last_svc:
        last_info = last_svc.service_date
        if last_svc.mileage:
            last_info += f" @ {last_svc.mileage:,.0f} mi"
        print(f"Last service: {last_svc.service_name}, {last_info}")
    next_svc = pick_next_due_service(statuses)
    if next_svc:
        summary = reminder_summary(next_svc.days_until_due, next_svc.miles_until_due)
        print(f"Next service: {next_svc.schedule.service_name}" + (f" ({summary})" if summary else ""))
    print()

    headers = [
        "Service",
        "Last Done",
        "Due (mi)",
        "Due (date)",
        "Remaining (mi)",
        "Remaining (time)",
        "Schedule ID",
    ]

    for status in sorted(MaintenanceStatus, key=lambda s: s.urgency):
        group = sorted(
            [s for s in statuses if s.status == status],
            key=lambda s: s.schedule.service_name,
        )
        if group:
            print(f"{status.label.upper()}:")
            print(tabulate(make_status_table(group), headers=headers, tablefmt="simple"))
            print()

    return 0


def cmd_timeline(args, repo: YamlRepository):
    """Show upcoming and completed services."""
    now = parse_as_of(args.as_of)
    vehicle = repo.get_vehicle(args.vehicle)
    schedules = repo.ensure_schedules_exist(vehicle.id)
    entries = build_timeline(schedules, repo.list_service_logs(vehicle.id), vehicle, now)
    if args.sorted:
        entries = sort_timeline(entries)

    print(f"Vehicle: {vehicle.name}")
    print()
    if not entries:
        print("You have no maintenance records yet.")
        return 0

    headers = ["Status", "Service", "Date", "Mileage", "Cost", "Notes"]
    print(tabulate(make_timeline_table(entries), headers=headers, tablefmt="simple"))
    return 0


def cmd_log(args, repo: YamlRepository):
    """Record a completed service."""
    vehicle = repo.get_vehicle(args.vehicle)
    entry_date = args.date or date.today().isoformat()
    custom = args.schedule.lower() == "custom"

    if custom:
        if not args.name:
            print("Error: --name is required for custom services")
            return 1
        title = args.name
    else:
        schedules = repo.list_schedules_for_vehicle(vehicle.id)
        schedule = next((s for s in schedules if s.id == args.schedule), None)
        if schedule is None:
            print(f"Error: Unknown schedule '{args.schedule}'")
            print("\nAvailable schedules:")
            for s in sorted(schedules, key=lambda s: s.service_name):
                print(f"  {s.service_name}")
                print(f"    ID: {s.id}")
            return 1
        title = schedule.service_name

    print(f"Adding service entry to {vehicle.name}:")
    print(f"  Service: {title}")
    print(f"  Date:    {entry_date}")
    if args.mileage is not None:
        print(f"  Mileage: {args.mileage:,.0f}")
    if args.cost is not None:
        print(f"  Cost:    ${args.cost:.2f}")
    if args.notes:
        print(f"  Notes:   {args.notes}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    if custom:
        repo.record_custom_service(
            vehicle.id, args.name, entry_date, args.mileage, args.cost, args.notes
        )
    else:
        repo.record_completed_service(
            vehicle.id, args.schedule, entry_date, args.mileage, args.cost, args.notes
        )
    print("Entry saved.")
    return 0


def cmd_update_miles(args, repo: YamlRepository):
    """Update current vehicle mileage."""
    vehicle = repo.get_vehicle(args.vehicle)

    print(f"Vehicle: {vehicle.name}")
    print(f"Current mileage: {format_miles(vehicle.current_mileage)}")
    print(f"New mileage:     {args.mileage:,.0f}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    repo.update_vehicle_mileage(vehicle.id, args.mileage)
    print("Mileage updated.")
    return 0


def cmd_set_due(args, repo: YamlRepository):
    """Override a schedule's next due date."""
    schedule = repo.update_schedule_due_date(args.schedule, args.date)
    print(f"{schedule.service_name} now due {schedule.next_due_date}.")
    return 0


def cmd_remind(args, repo: YamlRepository):
    """Run one reminder pass and print its report."""
    settings = ReminderSettings.from_env()
    mailer = SmtpMailer.from_settings(settings)
    now = parse_as_of(args.as_of) if args.as_of else None
    report = run_reminder_pass(repo, mailer, settings, now=now)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return 0

    print(f"Processed vehicles: {report.processed_vehicles}")
    print(
        f"Service reminders: {report.sent_count} sent, "
        f"{report.skipped_count} skipped, {report.error_count} errors"
    )
    print(
        f"Mileage reminders: {report.mileage_sent_count} sent, "
        f"{report.mileage_skipped_count} skipped, {report.mileage_error_count} errors"
    )
    rows = make_report_table(report)
    if rows:
        print()
        headers = ["Result", "Vehicle", "Schedule", "Email", "Detail"]
        print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


# =============================================================================
# Main
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Vehicle maintenance tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s vehicles
  %(prog)s add-vehicle --year 2015 --make Subaru --model BRZ --mileage 45210
  %(prog)s status 2015-subaru-brz
  %(prog)s timeline 2015-subaru-brz --sorted
  %(prog)s log 2015-subaru-brz <schedule-id> --mileage 50100 --cost 85
  %(prog)s log 2015-subaru-brz custom --name "Detailing" --cost 120
  %(prog)s update-miles 2015-subaru-brz 51000
  %(prog)s set-due <schedule-id> 2025-03-01
  %(prog)s remind --json
""",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory of vehicle YAML files (default: $MAINT_DATA_DIR or ./vehicles)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    vehicles_parser = subparsers.add_parser("vehicles", help="List vehicles")
    vehicles_parser.add_argument("--as-of", type=str, help="Evaluate as of date (YYYY-MM-DD)")

    add_parser = subparsers.add_parser("add-vehicle", help="Create a vehicle")
    add_parser.add_argument("--make", required=True)
    add_parser.add_argument("--model", required=True)
    add_parser.add_argument("--year", type=int)
    add_parser.add_argument("--vin")
    add_parser.add_argument("--email", help="Reminder contact address")
    add_parser.add_argument("--mileage", type=float, help="Current odometer reading")
    add_parser.add_argument("--id", help="Vehicle id (default: derived from year/make/model)")

    status_parser = subparsers.add_parser(
        "status", help="Show what maintenance is due, overdue, or on track"
    )
    status_parser.add_argument("vehicle", help="Vehicle id")
    status_parser.add_argument("--as-of", type=str, help="Evaluate as of date (YYYY-MM-DD)")

    timeline_parser = subparsers.add_parser("timeline", help="Show the service timeline")
    timeline_parser.add_argument("vehicle", help="Vehicle id")
    timeline_parser.add_argument("--as-of", type=str, help="Evaluate as of date (YYYY-MM-DD)")
    timeline_parser.add_argument(
        "--sorted", action="store_true", help="Order all entries by date"
    )

    log_parser = subparsers.add_parser("log", help="Record a completed service")
    log_parser.add_argument("vehicle", help="Vehicle id")
    log_parser.add_argument("schedule", help="Schedule id, or 'custom'")
    log_parser.add_argument("--name", help="Service name (custom services)")
    log_parser.add_argument(
        "--date", type=str, help="Service date in YYYY-MM-DD format (default: today)"
    )
    log_parser.add_argument("--mileage", type=float, help="Mileage at time of service")
    log_parser.add_argument("--cost", type=float, help="Cost of service in dollars")
    log_parser.add_argument("--notes", type=str, help="Notes about the service")
    log_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be added without saving"
    )

    update_miles_parser = subparsers.add_parser(
        "update-miles", help="Update current vehicle mileage"
    )
    update_miles_parser.add_argument("vehicle", help="Vehicle id")
    update_miles_parser.add_argument("mileage", type=float, help="Current mileage")
    update_miles_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be updated without saving"
    )

    set_due_parser = subparsers.add_parser("set-due", help="Override a schedule's due date")
    set_due_parser.add_argument("schedule", help="Schedule id")
    set_due_parser.add_argument("date", help="New due date (YYYY-MM-DD)")

    remind_parser = subparsers.add_parser("remind", help="Run one reminder pass")
    remind_parser.add_argument("--as-of", type=str, help="Run as of date (YYYY-MM-DD)")
    remind_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    return parser


COMMANDS = {
    "vehicles": cmd_vehicles,
    "add-vehicle": cmd_add_vehicle,
    "status": cmd_status,
    "timeline": cmd_timeline,
    "log": cmd_log,
    "update-miles": cmd_update_miles,
    "set-due": cmd_set_due,
    "remind": cmd_remind,
}


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = args.data_dir or ReminderSettings.from_env().data_dir
    repo = YamlRepository(data_dir)

    try:
        return COMMANDS[args.command](args, repo)
    except (MaintenanceError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
