"""
Reminder engine exceptions.

ConfigError is raised while turning user settings into a schedule and is
reported per reminder key; DeliveryError is raised by notification sinks and
never stops the delivery loop.
"""


class ReminderError(Exception):
    """Base class for reminder engine errors"""


class ConfigError(ReminderError, ValueError):
    """Malformed recurrence settings (time string, day set, interval, window, timezone)"""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class DeliveryError(ReminderError):
    """A notification could not be handed to the platform"""


class ReminderNotFound(ReminderError, LookupError):
    def __init__(self, reminder_id: str):
        super().__init__(f"Reminder {reminder_id} not found")
        self.reminder_id = reminder_id
