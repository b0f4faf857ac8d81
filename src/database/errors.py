"""Errors raised by the metadata store engines."""


class PersistenceError(Exception):
    """The store is unreachable or rejected a write or query."""

    def __init__(self, message: str = "Database error"):
        super().__init__(message)
        self.message = message
