"""Scheduling domain errors"""


class SchedulingError(ValueError):
    """Base class for invalid input handed to the scheduling engine"""


class InvalidWorkingHoursError(SchedulingError):
    """Working-hours policy outside 0-23 or with start >= end"""


class InvalidTaskError(SchedulingError):
    """A task that cannot be scheduled as given (e.g. non-positive estimate)"""

    def __init__(self, task_id, message: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id}: {message}")
