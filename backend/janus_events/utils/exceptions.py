"""Exceptions raised by the persistence layer."""

from typing import Optional


class EventSinkError(Exception):
    """Base error for the event sink."""


class PersistenceError(EventSinkError):
    """A write to the store failed."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class SchemaMissingError(PersistenceError):
    """The target table does not exist in this deployment."""

    def __init__(self, table: str):
        super().__init__(f"relation '{table}' does not exist", table=table)
