"""
Error taxonomy for schedule maintenance and lookups.
"""


class ScheduleError(Exception):
    """Base class for all schedule service errors."""


class ScheduleNotFound(ScheduleError):
    """No provider, dated entry or entry id matched the lookup.

    The message is the wire-level reason, e.g. ``working_times_not_found``.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedScheduleEncoding(ScheduleError):
    """A working-times string could not be decoded into slots."""


class InvalidTemplateIndex(ScheduleError):
    """A weekly template does not hold exactly seven days, or the weekday is out of range."""


class InvalidDateFormat(ScheduleError):
    """A date string is not a valid D/M/YYYY date."""


class PersistenceUnavailable(ScheduleError):
    """The calendar store cannot be reached."""
