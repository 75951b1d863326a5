class RegcheckError(Exception):
    """Base class for every error raised by this package."""


class StoreUnavailableError(RegcheckError):
    """A record store backend could not be opened."""


class MissingStoreEnvironmentError(StoreUnavailableError):
    """The configuration a backend needs is not present."""


class DispatchError(RegcheckError):
    """The background executor did not accept a trigger."""

    def __init__(self, message: str, status_code: int | None = None, job_id: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.job_id = job_id


class SubmissionError(RegcheckError):
    """The launcher rejected a job; there is nothing to poll."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PollingError(RegcheckError):
    """The status endpoint answered with something other than a record or 404."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class JobTimeoutError(RegcheckError):
    """The client stopped waiting; the job may still finish server-side."""

    def __init__(self, message: str, job_id: str):
        super().__init__(message)
        self.job_id = job_id


class JobCancelledError(RegcheckError):
    def __init__(self, message: str, job_id: str):
        super().__init__(message)
        self.job_id = job_id


class ApiError(RegcheckError):
    """Rendered by the app as ``{"message": ..., **extra}`` with ``status_code``."""

    def __init__(self, status_code: int, message: str, **extra):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.extra = extra
