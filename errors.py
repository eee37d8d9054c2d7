class TaskManagerError(Exception):
    status_code = 500
    message = "Server Error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(TaskManagerError):
    status_code = 400
    message = "Invalid request"


class NotFound(TaskManagerError):
    status_code = 404
    message = "Task not found"


class StoreError(TaskManagerError):
    """Persistence failure. The message never carries driver details."""

    status_code = 500
    message = "Server Error"
