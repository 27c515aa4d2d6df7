"""Errors raised by repositories instead of raw SQLAlchemy exceptions."""


class RepositoryError(Exception):
    """A repository could not complete a read or write."""

    def __init__(self, entity: str, message: str):
        self.entity = entity
        super().__init__(message)


class NotFoundError(RepositoryError):
    def __init__(self, entity: str, key: str):
        self.key = key
        super().__init__(entity, f"No {entity} with id {key}")


class DuplicateError(RepositoryError):
    """Insert rejected by a unique constraint."""

    def __init__(self, entity: str, column: str, value: str):
        self.column = column
        self.value = value
        super().__init__(entity, f"{entity}.{column} {value!r} is already taken")
