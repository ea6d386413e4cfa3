# Overview: Error taxonomy shared by services and routes.

"""
Service errors and the HTTP status each one maps to.

Services raise these; routes translate them with `error_response`.
Anything outside the taxonomy is an unexpected failure and becomes a 500.
"""

from __future__ import annotations

from flask import jsonify


class ServiceError(Exception):
    """Base class for expected service failures."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ServiceError, ValueError):
    """400-level input problem (missing field, wrong type)."""

    status_code = 400


class NotFoundError(ServiceError):
    """404: no matching row."""

    status_code = 404


class ForbiddenError(ServiceError):
    """403: the operation is never allowed in the current state (e.g., removing the last admin)."""

    status_code = 403


class ConflictError(ServiceError):
    """409: business rule conflict (e.g., an inventory count already in progress)."""

    status_code = 409


class PersistenceError(ServiceError):
    """
    500: the database driver failed.

    The message is always generic; the driver error is logged server-side
    by unit_of_work() and kept on `__cause__`.
    """

    status_code = 500

    def __init__(self, message: str = "Database error"):
        super().__init__(message)


def error_response(exc: ServiceError):
    """(body, status) tuple for a route to return."""
    return jsonify(exc.to_dict()), exc.status_code
