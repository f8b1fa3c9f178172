"""Reminder emails and the SMTP transport that delivers them."""

import html
import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from .config import ReminderSettings
from .errors import MailerError
from .formatting import reminder_summary
from .upcoming import UpcomingService
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

APP_NAME = "Maint"
BUTTON_STYLE = (
    "display:inline-block; background:#0a84ff; color:#fff; padding:12px 20px; "
    "border-radius:999px; text-decoration:none; font-weight:600;"
)
FOOTER_STYLE = "margin:24px 0 0; font-size:13px; color:#6b7280;"


class Mailer(ABC):
    """Outbound reminder delivery. Both methods return a delivery id."""

    @abstractmethod
    def send_schedule_reminder(
        self,
        recipient: str,
        vehicle: Vehicle,
        upcoming: UpcomingService,
        context_url: Optional[str],
    ) -> str:
        """Send a service reminder; raise MailerError on failure."""

    @abstractmethod
    def send_mileage_reminder(
        self, recipient: str, vehicle: Vehicle, context_url: Optional[str]
    ) -> str:
        """Send a mileage-confirmation nudge; raise MailerError on failure."""


def _vehicle_label(vehicle: Vehicle) -> str:
    return vehicle.name or "your vehicle"


def _new_message(sender: str, recipient: str, subject: str, text: str, body_html: str) -> EmailMessage:
    if not sender:
        raise MailerError("Missing REMINDER_FROM_EMAIL environment variable.")
    if not recipient:
        raise MailerError("Missing recipient email address.")

    msg = EmailMessage()
    try:
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = recipient
    except (ValueError, TypeError) as e:
        raise MailerError(f"Cannot address reminder to {recipient!r}: {e}") from e
    msg["Message-ID"] = make_msgid()
    msg.set_content(text)
    msg.add_alternative(body_html, subtype="html")
    return msg


def build_schedule_reminder(
    sender: str,
    recipient: str,
    vehicle: Vehicle,
    upcoming: UpcomingService,
    context_url: Optional[str] = None,
) -> EmailMessage:
    """Compose the reminder for one due or overdue service."""
    service_name = upcoming.schedule.service_name
    vehicle_label = _vehicle_label(vehicle)
    summary = (
        reminder_summary(upcoming.days_until_due, upcoming.miles_until_due)
        or "Stay on track with your maintenance schedule."
    )

    details = []
    if upcoming.due_date_label:
        details.append(f"Target date: {upcoming.due_date_label}")
    if upcoming.miles_until_due is not None:
        if upcoming.miles_until_due <= 0:
            details.append("Mileage threshold reached")
        else:
            details.append(f"{upcoming.miles_until_due:,.0f} miles remaining")

    text_lines = [
        "Hi there!",
        "",
        f"{service_name} is coming up for {vehicle_label}.",
        summary,
    ]
    if details:
        text_lines.append(" | ".join(details))
    if context_url:
        text_lines += ["", f"Log the service now: {context_url}"]
    text_lines += ["", f"Keep your maintenance on track with {APP_NAME}."]

    html_parts = [
        f'<p style="margin:0 0 16px; font-size:16px;">{html.escape(service_name)} is coming up '
        f"for <strong>{html.escape(vehicle_label)}</strong>.</p>",
        f'<p style="margin:0 0 12px; font-size:15px;">{html.escape(summary)}</p>',
    ]
    if details:
        items = "".join(f"<li>{html.escape(d)}</li>" for d in details)
        html_parts.append(
            f'<ul style="margin:0 0 16px; padding-left:20px; font-size:14px;">{items}</ul>'
        )
    if context_url:
        html_parts.append(
            f'<p style="margin:0 0 16px;"><a href="{html.escape(context_url)}" '
            f'style="{BUTTON_STYLE}">Log this service</a></p>'
        )
    html_parts.append(
        f'<p style="{FOOTER_STYLE}">You are receiving this reminder because you asked '
        f"{APP_NAME} to keep you up to date on maintenance.</p>"
    )

    return _new_message(
        sender,
        recipient,
        f"{APP_NAME} reminder: {service_name}",
        "\n".join(text_lines),
        "".join(html_parts),
    )


def build_mileage_reminder(
    sender: str,
    recipient: str,
    vehicle: Vehicle,
    context_url: Optional[str] = None,
) -> EmailMessage:
    """Compose the nudge asking the owner to confirm the odometer reading."""
    vehicle_label = _vehicle_label(vehicle)

    text_lines = [
        "Hi there!",
        "",
        f"It has been a while since you updated the mileage for {vehicle_label}.",
        f"Keeping your odometer reading current helps {APP_NAME} send accurate "
        "maintenance reminders.",
    ]
    if context_url:
        text_lines += ["", f"Update your mileage now: {context_url}"]
    text_lines += ["", f"Safe driving! The {APP_NAME} team"]

    html_parts = [
        '<p style="margin:0 0 16px; font-size:16px;">It has been a while since you updated '
        f"the mileage for <strong>{html.escape(vehicle_label)}</strong>.</p>",
        '<p style="margin:0 0 16px; font-size:15px;">Keeping your odometer reading current '
        f"helps {APP_NAME} keep your maintenance reminders accurate.</p>",
    ]
    if context_url:
        html_parts.append(
            f'<p style="margin:0 0 16px;"><a href="{html.escape(context_url)}" '
            f'style="{BUTTON_STYLE}">Update mileage</a></p>'
        )
    html_parts.append(
        f'<p style="{FOOTER_STYLE}">You are receiving this reminder because you asked '
        f"{APP_NAME} to send mileage updates.</p>"
    )

    return _new_message(
        sender,
        recipient,
        f"{APP_NAME} reminder: Update your mileage",
        "\n".join(text_lines),
        "".join(html_parts),
    )


class SmtpMailer(Mailer):
    """Deliver reminders through an SMTP server (STARTTLS + login when configured)."""

    def __init__(
        self,
        host: str,
        sender: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10,
    ):
        self.host = host
        self.sender = sender
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: ReminderSettings) -> "SmtpMailer":
        settings.require("sender", "smtp_host")
        return cls(
            host=settings.smtp_host,
            sender=settings.sender,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
        )

    def send_schedule_reminder(self, recipient, vehicle, upcoming, context_url):
        msg = build_schedule_reminder(self.sender, recipient, vehicle, upcoming, context_url)
        return self._deliver(msg)

    def send_mileage_reminder(self, recipient, vehicle, context_url):
        msg = build_mileage_reminder(self.sender, recipient, vehicle, context_url)
        return self._deliver(msg)

    def _deliver(self, msg: EmailMessage) -> str:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.user and self.password:
                    server.starttls()
                    server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailerError(f"SMTP delivery to {msg['To']} failed: {e}") from e
        logger.debug("Delivered %s to %s", msg["Message-ID"], msg["To"])
        return msg["Message-ID"]
