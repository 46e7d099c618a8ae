"""Error taxonomy shared by services and routers.

Every error carries a stable machine-readable ``kind`` and a human-readable
message naming the precondition that failed. Routers never translate these by
hand; the handlers registered in ``main.py`` render them as
``{"kind": ..., "detail": ...}``.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)


class SkillSprintError(Exception):
    kind = "Error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(SkillSprintError):
    kind = "Unauthorized"
    status_code = 401


class Forbidden(SkillSprintError):
    kind = "Forbidden"
    status_code = 403


class NotFound(SkillSprintError):
    kind = "NotFound"
    status_code = 404


class ValidationError(SkillSprintError):
    kind = "ValidationError"
    status_code = 400


class DuplicateSubmission(SkillSprintError):
    kind = "DuplicateSubmission"
    status_code = 409


class InvalidState(SkillSprintError):
    kind = "InvalidState"
    status_code = 409


class ChallengeNotActive(SkillSprintError):
    kind = "ChallengeNotActive"
    status_code = 400


class ChallengeWindowClosed(SkillSprintError):
    kind = "ChallengeWindowClosed"
    status_code = 400


class DependencyError(SkillSprintError):
    kind = "DependencyError"
    status_code = 503


def _error_response(status_code: int, kind: str, detail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"kind": kind, "detail": detail}
    )


async def skillsprint_error_handler(request: Request, exc: SkillSprintError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.kind, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return _error_response(422, ValidationError.kind, errors)


async def database_unavailable_handler(request: Request, exc: OperationalError):
    logger.error("Database unavailable during %s %s: %s", request.method, request.url.path, exc)
    return _error_response(
        DependencyError.status_code, DependencyError.kind, "Database is unavailable"
    )


def register_error_handlers(app):
    app.add_exception_handler(SkillSprintError, skillsprint_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(OperationalError, database_unavailable_handler)
