"""Service-level exceptions, translated to HTTP status codes by the routes.

ValueError is still treated as a validation problem (400) everywhere, the
classes here only cover what ValueError cannot express.
"""
from __future__ import annotations


class ValidationError(ValueError):
    status_code = 400

    def __init__(self, message: str, samples: list | None = None):
        super().__init__(message)
        self.samples = samples


class UnprocessableError(ValidationError):
    status_code = 422


class SemesterFormatError(UnprocessableError):
    pass


class UnauthorizedError(Exception):
    status_code = 401


class ForbiddenError(Exception):
    status_code = 403


class NotFoundError(Exception):
    status_code = 404


class ConflictError(Exception):
    status_code = 409


class UpstreamError(Exception):
    """The AI service answered with a non-2xx status or an unusable body."""
    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None, retry_after: float | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.retry_after = retry_after


class ServiceConfigError(Exception):
    status_code = 500


def status_for(exc: Exception) -> int:
    code = getattr(exc, "status_code", None)
    if isinstance(code, int):
        return code
    if isinstance(exc, ValueError):
        return 400
    return 500
