"""
Exception types shared across the task board core.

Nothing here is fatal to the process: each error belongs to the one
operation that raised it.
"""


class TaskBuddyError(Exception):
    """Base class for all task board errors."""
    pass


class ConfigError(TaskBuddyError):
    """Raised when configuration is invalid or incomplete."""
    pass


class TaskValidationError(TaskBuddyError):
    """Raised when a task payload fails structural validation."""
    pass


class PersistenceError(TaskBuddyError):
    """Raised when the persistence service rejects or fails a call."""
    pass


class TaskNotFound(PersistenceError):
    """Raised when an update targets a task id the service does not know."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class BlobStoreError(TaskBuddyError):
    """Raised when an attachment upload fails."""
    pass


class NotSignedIn(TaskBuddyError):
    """Raised when a user-scoped operation runs without a signed-in user."""
    pass
