"""Custom exception handlers for consistent error responses.

Every error leaves the API in the same envelope:

    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable error message",
            "details": {...}  // Optional additional details
        }
    }

Validation problems annotate specific fields (details.errors); backend
and retry-exhaustion failures surface a single retry prompt.
"""

import enum
import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

GENERIC_RETRY_MESSAGE = (
    "There was an error submitting your agreement. Please try again."
)


class RulesGateException(Exception):
    """Base exception for rulesgate application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Union[dict, list, None] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class AgreementValidationError(RulesGateException):
    """One or more agreement fields are invalid.  Always user-fixable."""

    def __init__(self, errors: list):
        self.errors = errors
        super().__init__(
            message="Validation error",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_ERROR",
            details={"errors": [e.model_dump() for e in errors]},
        )


class GateViolationError(RulesGateException):
    """Submission attempted before every rules section was read."""

    def __init__(self, message: str = "Please scroll down and read all the rules before submitting."):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="GATE_LOCKED",
        )


class SubmissionInFlightError(RulesGateException):
    """A submission from the same form is still being processed."""

    def __init__(self, message: str = "A submission is already in progress"):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="SUBMISSION_IN_FLIGHT",
        )


class AlreadySignedError(RulesGateException):
    """The session already stored an agreement; the form is one-shot."""

    def __init__(self, message: str = "An agreement has already been submitted for this session"):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="ALREADY_SIGNED",
        )


class UnknownSectionError(RulesGateException):
    def __init__(self, section_id: str):
        self.section_id = section_id
        super().__init__(
            message=f"Section not found: {section_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="UNKNOWN_SECTION",
        )


class SubmissionErrorKind(str, enum.Enum):
    BACKEND_ERROR = "backend_error"
    EXHAUSTED_RETRIES = "exhausted_retries"


class SubmissionError(RulesGateException):
    """The agreement could not be stored.

    BACKEND_ERROR carries the store's message verbatim.  EXHAUSTED_RETRIES
    falls back to the generic retry prompt; `attempts` records how many
    inserts were tried.
    """

    def __init__(
        self,
        kind: SubmissionErrorKind,
        message: str | None = None,
        attempts: int = 0,
    ):
        self.kind = kind
        self.attempts = attempts
        if message is None:
            message = GENERIC_RETRY_MESSAGE
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="SUBMISSION_FAILED",
            details={
                "kind": kind.value,
                "retryable": True,
                "prompt": GENERIC_RETRY_MESSAGE,
            },
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create standardized error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def rulesgate_exception_handler(
    request: Request,
    exc: RulesGateException,
) -> JSONResponse:
    """Handle custom rulesgate exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "rulesgate exception: %s - %s",
        exc.error_code,
        exc.message,
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            "HTTP %s: %s",
            exc.status_code,
            exc.detail,
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        "Validation error on %s",
        request.url.path,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        "Unhandled exception on %s: %s",
        request.url.path,
        exc,
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    # Don't expose internal details
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(RulesGateException, rulesgate_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
