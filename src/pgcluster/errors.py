"""Error types for pgcluster."""


class PgClusterError(Exception):
    """Base exception for pgcluster errors."""
    pass


class ConfigurationError(PgClusterError):
    """Invalid cluster or operator configuration for one generated object."""
    pass


class ExternalSourceError(PgClusterError):
    """A pod environment Secret or ConfigMap could not be read."""
    pass


class SourceNotFoundError(ExternalSourceError):
    """The referenced Secret or ConfigMap does not exist."""
    pass


class RetryExhaustedError(PgClusterError):
    """A retried operation kept failing until its attempts ran out."""

    def __init__(self, retries: int):
        super().__init__(f"still failing after {retries} retries")
        self.retries = retries


class SynthesisCancelled(PgClusterError):
    """The caller cancelled synthesis while it was waiting on a retry."""
    pass
