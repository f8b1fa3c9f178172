#!/usr/bin/env python3
"""Tests for reminder emails and SMTP delivery."""
import smtplib
from unittest.mock import patch

import pytest

from conftest import NOW, make_schedule, make_vehicle
from maintenance import ConfigError, MailerError, ReminderSettings, SmtpMailer, evaluate_schedule
from maintenance.mailer import build_mileage_reminder, build_schedule_reminder

SENDER = "maint@example.com"
RECIPIENT = "owner@example.com"


def oil_upcoming():
    schedule = make_schedule(
        "oil",
        service_name="Oil Change",
        next_due_date="2024-07-01",
        next_due_mileage=50000,
        reminder_lead_days=14,
    )
    return evaluate_schedule(schedule, 45210, NOW)


def text_of(msg):
    return msg.get_body(preferencelist=("plain",)).get_content()


def html_of(msg):
    return msg.get_body(preferencelist=("html",)).get_content()


class TestBuildScheduleReminder:
    """Tests for build_schedule_reminder."""

    def test_headers(self):
        msg = build_schedule_reminder(SENDER, RECIPIENT, make_vehicle(), oil_upcoming())
        assert msg["Subject"] == "Maint reminder: Oil Change"
        assert msg["From"] == SENDER
        assert msg["To"] == RECIPIENT
        assert msg["Message-ID"]

    def test_text_body(self):
        msg = build_schedule_reminder(
            SENDER, RECIPIENT, make_vehicle(), oil_upcoming(), "http://localhost:5001/service/new"
        )
        text = text_of(msg)
        assert "Oil Change is coming up for 2015 Subaru BRZ." in text
        assert "Due in 11 days • 4,790 miles remaining" in text
        assert "Target date: Jul 1, 2024 | 4,790 miles remaining" in text
        assert "Log the service now: http://localhost:5001/service/new" in text

    def test_no_link_without_url(self):
        msg = build_schedule_reminder(SENDER, RECIPIENT, make_vehicle(), oil_upcoming())
        assert "Log the service now" not in text_of(msg)
        assert "Log this service" not in html_of(msg)

    def test_html_escapes(self):
        vehicle = make_vehicle(make="<Subaru>", year=None)
        msg = build_schedule_reminder(SENDER, RECIPIENT, vehicle, oil_upcoming())
        html = html_of(msg)
        assert "&lt;Subaru&gt; BRZ" in html
        assert "<Subaru>" not in html

    def test_missing_sender(self):
        with pytest.raises(MailerError, match="REMINDER_FROM_EMAIL"):
            build_schedule_reminder("", RECIPIENT, make_vehicle(), oil_upcoming())

    def test_missing_recipient(self):
        with pytest.raises(MailerError):
            build_schedule_reminder(SENDER, "", make_vehicle(), oil_upcoming())

    def test_header_injection_rejected(self):
        with pytest.raises(MailerError, match="Cannot address reminder"):
            build_schedule_reminder(
                SENDER, RECIPIENT + "\nBcc: evil@example.com", make_vehicle(), oil_upcoming()
            )


class TestBuildMileageReminder:
    """Tests for build_mileage_reminder."""

    def test_content(self):
        msg = build_mileage_reminder(
            SENDER, RECIPIENT, make_vehicle(), "http://localhost:5001/vehicle/mileage"
        )
        assert msg["Subject"] == "Maint reminder: Update your mileage"
        text = text_of(msg)
        assert "updated the mileage for 2015 Subaru BRZ" in text
        assert "Update your mileage now: http://localhost:5001/vehicle/mileage" in text
        assert "Update mileage</a>" in html_of(msg)


class TestSmtpMailer:
    """Tests for SmtpMailer delivery."""

    def test_from_settings_requires_host(self):
        with pytest.raises(ConfigError, match="SMTP_HOST"):
            SmtpMailer.from_settings(ReminderSettings(sender=SENDER))

    def test_from_settings(self):
        mailer = SmtpMailer.from_settings(
            ReminderSettings(sender=SENDER, smtp_host="smtp.example.com", smtp_port=2525)
        )
        assert (mailer.host, mailer.port, mailer.sender) == ("smtp.example.com", 2525, SENDER)

    def test_delivers_with_login(self):
        mailer = SmtpMailer("smtp.example.com", SENDER, user="user", password="pass")
        with patch("maintenance.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            delivery_id = mailer.send_schedule_reminder(RECIPIENT, make_vehicle(), oil_upcoming(), None)

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=10)
        server.starttls.assert_called_once_with()
        server.login.assert_called_once_with("user", "pass")
        sent = server.send_message.call_args[0][0]
        assert sent["To"] == RECIPIENT
        assert delivery_id == sent["Message-ID"]

    def test_delivers_without_login(self):
        mailer = SmtpMailer("localhost", SENDER, port=25)
        with patch("maintenance.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            mailer.send_mileage_reminder(RECIPIENT, make_vehicle(), None)

        server.starttls.assert_not_called()
        server.login.assert_not_called()
        server.send_message.assert_called_once()

    def test_smtp_error(self):
        mailer = SmtpMailer("localhost", SENDER)
        with patch("maintenance.mailer.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            server.send_message.side_effect = smtplib.SMTPRecipientsRefused({RECIPIENT: (550, b"no")})
            with pytest.raises(MailerError):
                mailer.send_mileage_reminder(RECIPIENT, make_vehicle(), None)

    def test_connection_error(self):
        mailer = SmtpMailer("localhost", SENDER)
        with patch("maintenance.mailer.smtplib.SMTP", side_effect=ConnectionRefusedError()):
            with pytest.raises(MailerError):
                mailer.send_mileage_reminder(RECIPIENT, make_vehicle(), None)
