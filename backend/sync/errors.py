# sync/errors.py — Failure taxonomy of the board sync client
from typing import Optional


class BoardSyncError(Exception):
    """Base class for everything the sync client raises"""


class ValidationError(BoardSyncError):
    """Input rejected before any remote call (blank title, blank comment, ...)"""


class PersistenceError(BoardSyncError):
    """A call to the persistence service failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFound(PersistenceError):
    """Referenced board, column, task or item does not exist remotely"""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class LoadError(PersistenceError):
    """A remote read failed (network or store error)"""


class WriteError(PersistenceError):
    """A remote create, update or delete failed"""
