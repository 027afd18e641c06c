"""
Domain exceptions shared by the policy core and the registry service.

Routes translate these into HTTP status codes:
  - InvalidInputError -> 400
  - NotFoundError     -> 404
  - ConflictError     -> 409
"""


class RegistryError(Exception):
    """Base class for registry domain errors"""


class InvalidInputError(RegistryError, ValueError):
    """Caller supplied a request the registry refuses to evaluate"""


class NotFoundError(RegistryError, LookupError):
    """
    Requested record does not exist for the caller.

    Raised both when the record is missing and when it exists but is
    excluded by tenant visibility. The message never tells the two apart.
    """


class ConflictError(RegistryError):
    """An identifier that must be unique is already taken"""
