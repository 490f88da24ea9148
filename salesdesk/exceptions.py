"""Errors raised by the commission back office.

All of them are ``ValueError`` subclasses; the API maps each one to the
status code it carries.
"""
from __future__ import annotations


class SalesDeskError(ValueError):
    """Base class for recoverable business errors."""

    status_code = 400


class ConflictError(SalesDeskError):
    """The request collides with an existing record."""

    status_code = 409


class ValidationError(SalesDeskError):
    """The request carries a value the business rules reject."""

    status_code = 400


class NotFoundError(SalesDeskError):
    status_code = 404
