"""Reminder settings read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_REPEAT_HOURS = 24
DEFAULT_MILEAGE_STALE_DAYS = 30
DEFAULT_APP_BASE_URL = "http://localhost:5001"
DEFAULT_SMTP_PORT = 587
DEFAULT_DATA_DIR = "vehicles"


def parse_positive_int(raw, default: int) -> int:
    """Parse a positive integer setting, falling back to default."""
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, int):
        return raw if raw > 0 else default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass
class ReminderSettings:
    """Everything a reminder run needs besides its collaborators."""

    repeat_hours: int = DEFAULT_REPEAT_HOURS
    mileage_stale_days: int = DEFAULT_MILEAGE_STALE_DAYS
    sender: Optional[str] = None
    app_base_url: str = DEFAULT_APP_BASE_URL
    cron_secret: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    data_dir: Path = Path(DEFAULT_DATA_DIR)

    def __post_init__(self):
        self.repeat_hours = parse_positive_int(self.repeat_hours, DEFAULT_REPEAT_HOURS)
        self.mileage_stale_days = parse_positive_int(
            self.mileage_stale_days, DEFAULT_MILEAGE_STALE_DAYS
        )
        self.smtp_port = parse_positive_int(self.smtp_port, DEFAULT_SMTP_PORT)
        self.data_dir = Path(self.data_dir)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ReminderSettings":
        env = os.environ if environ is None else environ
        return cls(
            repeat_hours=env.get("REMINDER_REPEAT_HOURS"),
            mileage_stale_days=env.get("REMINDER_MILEAGE_STALE_DAYS"),
            sender=env.get("REMINDER_FROM_EMAIL") or None,
            app_base_url=env.get("REMINDER_APP_BASE_URL") or DEFAULT_APP_BASE_URL,
            cron_secret=env.get("REMINDER_CRON_SECRET") or None,
            smtp_host=env.get("SMTP_HOST") or None,
            smtp_port=env.get("SMTP_PORT"),
            smtp_user=env.get("SMTP_USER") or None,
            smtp_password=env.get("SMTP_PASS") or None,
            data_dir=env.get("MAINT_DATA_DIR") or DEFAULT_DATA_DIR,
        )

    def require(self, *names: str) -> None:
        """Raise ConfigError for the first listed setting that is unset."""
        env_names = {
            "sender": "REMINDER_FROM_EMAIL",
            "cron_secret": "REMINDER_CRON_SECRET",
            "smtp_host": "SMTP_HOST",
        }
        for name in names:
            if not getattr(self, name):
                env_name = env_names.get(name, name)
                raise ConfigError(f"Missing {env_name} environment variable.")
