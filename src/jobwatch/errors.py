"""Error taxonomy for polling and provider checks.

Most of these are not raised across the public API. The scheduler catches fetch
failures and hands the resulting error objects to listeners; the prober folds
them into ProviderHealth results.
"""


class JobWatchError(Exception):
    """Base exception for jobwatch errors."""

    pass


class StatusFetchError(JobWatchError):
    """A status or provider request failed."""

    pass


class TransientFetchError(StatusFetchError):
    """Network blip, timeout or server-side 5xx. Retried with backoff."""

    pass


class TerminalJobError(JobWatchError):
    """The job itself reported failure or cancellation."""

    def __init__(self, job_id: str, status: str, message: str | None = None):
        self.job_id = job_id
        self.status = status
        self.message = message
        detail = f"Job {job_id} ended with status {status}"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)


class RetryBudgetExhausted(JobWatchError):
    """Polling was abandoned after too many consecutive fetch failures."""

    def __init__(self, job_id: str, attempts: int, last_error: str | None = None):
        self.job_id = job_id
        self.attempts = attempts
        self.last_error = last_error
        detail = f"Polling abandoned for job {job_id} after {attempts} failed attempts"
        if last_error:
            detail = f"{detail} (last error: {last_error})"
        super().__init__(detail)


class CredentialUnavailable(JobWatchError):
    """No usable credential for a provider.

    The vault returns None instead of raising this; it exists for hosts that
    prefer to turn a missing credential into an exception at their own boundary.
    """

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"No valid credential for provider {provider_id}")
