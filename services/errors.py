"""
Scheduler error taxonomy
========================

Every error carries the HTTP status the blueprint answers with and a message
that is safe to show the user.
"""


class SchedulerError(Exception):
    """Base class for errors surfaced to the caller verbatim"""

    status_code = 500

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.message, "code": self.__class__.__name__}


class NotFound(SchedulerError):
    """Record or plan entry not found"""

    status_code = 404


class InvalidArgument(SchedulerError):
    """Invalid argument"""

    status_code = 400


class LockedCompletion(SchedulerError):
    """Completion belongs to a past day and can no longer be changed"""

    status_code = 409


class StoreUnavailable(SchedulerError):
    """Problem store is temporarily unavailable"""

    status_code = 503
