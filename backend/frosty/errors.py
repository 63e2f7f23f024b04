# Overview: Exception taxonomy shared by services and routes, with HTTP translation.

"""
Every business failure raised by the service layer is a FrostyError.

Routes catch FrostyError at the request boundary and hand it to
error_response(), which turns it into a JSON body plus the status code the
exception carries. Anything else reaching a route is logged and reported as
a generic 500.
"""

from __future__ import annotations

from flask import jsonify


class FrostyError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(FrostyError):
    """400-level input problem; details maps field name to message."""

    status_code = 400


class InvalidLineItem(ValidationError):
    """A line item was rejected by the strict input policy."""


class Unauthorized(FrostyError):
    """401: no session, or the session is no longer valid."""

    status_code = 401


class InvalidCredentials(Unauthorized):
    """Unknown username or wrong password."""

    def __init__(self, message: str = "Invalid username or password", details: dict | None = None):
        super().__init__(message, details)


class PendingApproval(Unauthorized):
    """Correct credentials, but an administrator has not approved the account yet."""

    def __init__(
        self,
        message: str = "Your account is pending approval by an administrator",
        details: dict | None = None,
    ):
        super().__init__(message, details)


class Forbidden(FrostyError):
    """403: authenticated, but the role does not allow the action."""

    status_code = 403


class NotFound(FrostyError):
    """404: the id does not resolve to a record."""

    status_code = 404


class Conflict(FrostyError):
    """409: duplicate unique key (invoice number, job code)."""

    status_code = 409


class UsernameTaken(Conflict):
    """Registration forms treat a taken username as a field error, so 400."""

    status_code = 400

    def __init__(self, message: str = "Username already exists", details: dict | None = None):
        super().__init__(message, details or {"username": "already exists"})


def error_response(exc: FrostyError):
    return jsonify(exc.to_dict()), exc.status_code
