"""Exception types for the kv_jobs library."""


class KvJobsError(Exception):
    """Base exception for all kv_jobs errors."""

    pass


class JobNotFoundError(KvJobsError):
    """Raised when a job record is missing or has expired."""

    def __init__(self, job_id: str, message: str = None):
        self.job_id = job_id
        if message is None:
            message = f"Job {job_id} not found"
        super().__init__(message)


class UnknownJobTypeError(KvJobsError):
    """Raised by the worker when a job references an unregistered type."""

    def __init__(self, job_type: str, message: str = None):
        self.job_type = job_type
        if message is None:
            message = f"Unknown job type: {job_type}"
        super().__init__(message)


class InvalidScheduleError(KvJobsError, ValueError):
    """Raised when a schedule uses an interval outside the supported set."""

    def __init__(self, cron: str, message: str = None):
        self.cron = cron
        if message is None:
            message = (
                f"Unsupported schedule '{cron}', expected one of "
                "@hourly, @daily, @weekly, @monthly"
            )
        super().__init__(message)


class AuthTokenError(KvJobsError):
    """Raised when the admin API rejects a missing or invalid auth token."""

    pass


class RemoteHttpError(KvJobsError):
    """Raised when an HTTP request to a remote kv_jobs service fails."""

    def __init__(self, status_code: int, message: str, response_body: str = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(f"HTTP {status_code}: {message}")
