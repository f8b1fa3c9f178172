"""Exception types raised by the maintenance package."""


class MaintenanceError(Exception):
    """Base class for maintenance tracking errors."""


class ConfigError(MaintenanceError):
    """Required configuration is missing or unusable."""


class RepositoryError(MaintenanceError):
    """The data store could not be read or written."""


class NotFoundError(RepositoryError):
    """A vehicle or schedule does not exist."""


class MailerError(MaintenanceError):
    """A reminder email could not be delivered."""
