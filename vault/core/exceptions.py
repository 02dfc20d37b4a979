"""
core/exceptions.py
------------------
Domain errors raised by the service layer.

Services never build HTTP responses; routes catch these and translate
them to HTTPException. "No credentials for this site" is deliberately not
here: it is a normal, empty locate result.
"""


class VaultError(Exception):
    """Base class for all domain errors."""


class Forbidden(VaultError):
    """Caller is missing, inactive, or does not belong to the company in its token.

    Fatal for the request and never retried. Carries no information about
    what the caller would have seen.
    """


class NotFound(VaultError):
    """Entity does not exist, or exists but is not visible to the caller."""


class InvalidInput(VaultError):
    """Request rejected before any storage access."""


class MissingHost(InvalidInput):
    def __init__(self) -> None:
        super().__init__("host query parameter is required")


class Conflict(VaultError):
    """Write would violate a uniqueness rule."""


class StorageUnavailable(VaultError):
    """Document store failure; resolution is side-effect free so callers may retry."""
