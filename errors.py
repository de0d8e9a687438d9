"""
errors.py
Exceptions raised by the data clients and the query layer.
"""

from __future__ import annotations


class AppError(Exception):
    """Base exception for the admin app."""


class DataError(AppError):
    """A store operation failed (network, constraint violation, bad response)."""


class NotFoundError(DataError):
    """The row an update targeted does not exist."""
