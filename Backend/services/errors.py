class SchedulerError(Exception):
    """Base class for dose-notification scheduler failures."""


class InvalidScheduleParameters(SchedulerError, ValueError):
    """frequency_hours or duration_days is not a positive number."""


class TransientDeliveryFailure(SchedulerError):
    """Temporary transport error (network, quota). The dose stays unsent."""


class PermanentSubscriptionFailure(SchedulerError):
    """The push endpoint is gone for good; the subscription must be removed."""

    def __init__(self, message: str, status_code: int = 410):
        super().__init__(message)
        self.status_code = status_code


class StoreUnavailable(SchedulerError):
    """A store query or write failed."""
