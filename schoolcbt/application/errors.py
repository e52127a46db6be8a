class NotFoundError(ValueError):
    """Raised when a requested entity does not exist."""


class PermissionDeniedError(Exception):
    """Raised when the caller may not act on an entity."""


class AlreadyExistsError(ValueError):
    pass
