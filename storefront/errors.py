"""Failures raised by the service layer.

Route handlers translate these into HTTP responses. Each class carries the
status it maps to by default; some endpoints override it to keep their
historical wire contract (e.g. every login failure is a 400).
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequest(ServiceError):
    status_code = 400


class Conflict(ServiceError):
    status_code = 409


class NotFound(ServiceError):
    status_code = 404


class Unauthenticated(ServiceError):
    status_code = 401


class Unauthorized(ServiceError):
    status_code = 401


class InvalidToken(ServiceError):
    status_code = 400


class Forbidden(ServiceError):
    status_code = 403
