"""
Typed application errors.

Services raise these unchanged; only the HTTP layer (api.py) turns them into
status codes. Driver errors from SQLAlchemy are not wrapped here.
"""
from __future__ import annotations


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    status_code = 404


class BadRequestError(AppError):
    status_code = 400


class ConflictError(BadRequestError):
    """Invariant violation caused by the current state of other rows
    (item on loan, container still holding items, label already taken)."""
    status_code = 409


class InternalServerError(AppError):
    status_code = 500


class ConfigError(AppError):
    status_code = 500


class StorageError(AppError):
    status_code = 500


class LocalIOError(AppError):
    status_code = 500
