"""
Exceptions for faults that are not ordinary denials.

Denials (capacity, eligibility, duplicates, ...) are expected outcomes and are
returned as values. Only the two fault kinds below are raised.
"""


class FacilityAccessError(Exception):
    """Base class for engine faults."""


class ConfigurationFault(FacilityAccessError):
    """Catalog or token registry data the engine refuses to act on.

    Examples: two slots starting at the same time, an unrecognized
    restriction tag, a token registered under two facilities.
    """

    def __init__(self, kind: str, detail: str):
        super().__init__(f"{kind}: {detail}")
        self.kind = kind
        self.detail = detail


class TransientStorageFailure(FacilityAccessError):
    """Storage did not answer within its bounds after all retries."""

    def __init__(self, operation: str, attempts: int, cause: Exception | None = None):
        super().__init__(f"{operation} failed after {attempts} attempt(s)")
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
