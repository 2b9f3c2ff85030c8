"""
RFC 7807 Problem Details exception handling.

Provides standardized error responses for the API following the
"Problem Details for HTTP APIs" specification, plus the domain errors raised
inside the contract services.

See: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel, Field
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import traceback
import uuid
from datetime import datetime, timezone

from backoffice.middleware.correlation import get_request_id

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://backoffice.local/problems"


def _get_trace_id() -> str:
    """Get trace ID from correlation context or generate a new one."""
    request_id = get_request_id()
    if request_id and request_id != "unknown":
        return request_id
    return str(uuid.uuid4())[:12]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class ErrorCode(str, Enum):
    """Standardized error codes for the back-office API."""

    # Authentication & Authorization
    UNAUTHORIZED = "AUTH_001"
    FORBIDDEN = "AUTH_002"

    # Validation
    VALIDATION_ERROR = "VAL_001"

    # Resource
    NOT_FOUND = "RES_001"
    CONFLICT = "RES_003"

    # Business Logic
    BUSINESS_RULE_VIOLATION = "BIZ_001"
    INVALID_TRANSITION = "BIZ_004"

    # External Services
    EXTERNAL_SERVICE_ERROR = "EXT_001"
    TEMPLATE_ERROR = "EXT_007"
    CONVERSION_ERROR = "EXT_008"
    STORAGE_ERROR = "EXT_009"
    DATABASE_ERROR = "EXT_004"

    # Server
    INTERNAL_ERROR = "SRV_001"


# HTTP status used when a service result carries one of these codes
ERROR_CODE_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.BUSINESS_RULE_VIOLATION: 400,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.TEMPLATE_ERROR: 502,
    ErrorCode.CONVERSION_ERROR: 502,
    ErrorCode.STORAGE_ERROR: 502,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


class ProblemDetail(BaseModel):
    """
    RFC 7807 Problem Details response schema.

    Attributes:
        type: URI reference identifying the problem type
        title: Short, human-readable summary
        status: HTTP status code
        detail: Human-readable explanation specific to this occurrence
        instance: URI reference identifying this specific occurrence
        code: Machine-readable error code for client handling
        timestamp: ISO 8601 timestamp of when the error occurred
        trace_id: Unique identifier for tracing in logs/Sentry
        errors: List of field-level validation errors (for 422)
    """

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str
    instance: Optional[str] = None
    code: str
    timestamp: str
    trace_id: str
    errors: Optional[List[Dict[str, Any]]] = None


class BackofficeException(HTTPException):
    """
    Base HTTP exception with RFC 7807 support.

    Usage:
        raise BackofficeException(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail="Contract not found",
        )
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        title: Optional[str] = None,
        instance: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.errors = errors
        self.trace_id = _get_trace_id()
        self.timestamp = _utc_timestamp()

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            422: "Validation Error",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")

    def to_problem_detail(self) -> ProblemDetail:
        return ProblemDetail(
            type=f"{PROBLEM_TYPE_BASE}/{self.code.value.lower().replace('_', '-')}",
            title=self.title,
            status=self.status_code,
            detail=self.detail,
            instance=self.instance,
            code=self.code.value,
            timestamp=self.timestamp,
            trace_id=self.trace_id,
            errors=self.errors,
        )


class NotFoundError(BackofficeException):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str, instance: Optional[str] = None):
        super().__init__(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail=f"{resource} with ID {resource_id} was not found",
            instance=instance,
        )


class UnauthorizedError(BackofficeException):
    """Authentication required (401)."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=401,
            code=ErrorCode.UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(BackofficeException):
    """Permission denied (403)."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(status_code=403, code=ErrorCode.FORBIDDEN, detail=detail)


# ---------------------------------------------------------------------------
# Domain errors (raised inside services, converted to action results)
# ---------------------------------------------------------------------------


class ContractError(Exception):
    """Base class for contract domain errors."""

    error_code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTransitionError(ContractError):
    error_code = ErrorCode.INVALID_TRANSITION

    def __init__(self, current: str, target: str):
        super().__init__(f"Transição de status inválida: {current} -> {target}")
        self.current = current
        self.target = target


class ContractNotEditableError(ContractError):
    error_code = ErrorCode.INVALID_TRANSITION

    def __init__(self, status: str):
        super().__init__(f"Contrato com status {status} não pode ser editado.")
        self.status = status


class CalculationError(ContractError):
    """Inputs produce values outside the representable range."""

    error_code = ErrorCode.VALIDATION_ERROR


class VersionConflictError(ContractError):
    error_code = ErrorCode.CONFLICT

    def __init__(self, expected: Optional[int], actual: Optional[int]):
        super().__init__(
            f"O contrato foi alterado por outra pessoa (versão esperada {expected}, atual {actual})."
        )
        self.expected = expected
        self.actual = actual


class CollaboratorError(ContractError):
    """Failure of an external collaborator (template engine, converter, storage)."""

    error_code = ErrorCode.EXTERNAL_SERVICE_ERROR


class TemplateNotFoundError(CollaboratorError):
    error_code = ErrorCode.TEMPLATE_ERROR

    def __init__(self, template_name: str, path: str):
        super().__init__(f"Template não encontrado: {template_name} ({path})")
        self.template_name = template_name
        self.path = path


class TemplateRenderError(CollaboratorError):
    error_code = ErrorCode.TEMPLATE_ERROR


class DocumentConversionError(CollaboratorError):
    error_code = ErrorCode.CONVERSION_ERROR


class StorageError(CollaboratorError):
    error_code = ErrorCode.STORAGE_ERROR


# ---------------------------------------------------------------------------
# Exception handlers for FastAPI
# ---------------------------------------------------------------------------


def _apply_cors(response: JSONResponse, request: Request, allowed_origins: Optional[List[str]]) -> None:
    if allowed_origins:
        origin = request.headers.get("origin", "")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"


def create_problem_response(
    status_code: int,
    code: ErrorCode,
    detail: str,
    request: Request,
    errors: Optional[List[Dict[str, Any]]] = None,
    trace_id: Optional[str] = None,
    allowed_origins: Optional[List[str]] = None,
) -> JSONResponse:
    """Create a RFC 7807 compliant JSON response with CORS headers."""
    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/{code.value.lower().replace('_', '-')}",
        title=BackofficeException._default_title(status_code),
        status=status_code,
        detail=detail,
        instance=str(request.url.path),
        code=code.value,
        timestamp=_utc_timestamp(),
        trace_id=trace_id or _get_trace_id(),
        errors=errors,
    )

    response = JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )
    _apply_cors(response, request, allowed_origins)
    return response


def create_exception_handlers(allowed_origins: List[str]):
    """
    Create exception handlers with configured allowed origins for CORS.

    Usage in main.py:
        handlers = create_exception_handlers(allowed_origins)
        app.add_exception_handler(BackofficeException, handlers["backoffice"])
        app.add_exception_handler(RequestValidationError, handlers["validation"])
        app.add_exception_handler(Exception, handlers["generic"])
    """

    async def handle_backoffice_exception(request: Request, exc: BackofficeException) -> JSONResponse:
        logger.warning(
            "BackofficeException: %s - %s",
            exc.code.value,
            exc.detail,
            extra={"trace_id": exc.trace_id, "status_code": exc.status_code, "path": request.url.path},
        )
        response = JSONResponse(
            status_code=exc.status_code,
            content=exc.to_problem_detail().model_dump(exclude_none=True),
            media_type="application/problem+json",
            headers=exc.headers,
        )
        _apply_cors(response, request, allowed_origins)
        return response

    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle standard HTTPException with RFC 7807 response."""
        code_map = {
            400: ErrorCode.VALIDATION_ERROR,
            401: ErrorCode.UNAUTHORIZED,
            403: ErrorCode.FORBIDDEN,
            404: ErrorCode.NOT_FOUND,
            409: ErrorCode.CONFLICT,
            422: ErrorCode.VALIDATION_ERROR,
            502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        }
        code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
        return create_problem_response(
            status_code=exc.status_code,
            code=code,
            detail=str(exc.detail),
            request=request,
            allowed_origins=allowed_origins,
        )

    async def handle_validation_exception(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return create_problem_response(
            status_code=422,
            code=ErrorCode.VALIDATION_ERROR,
            detail="Request validation failed",
            request=request,
            errors=errors,
            allowed_origins=allowed_origins,
        )

    async def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions with RFC 7807 response."""
        from backoffice.config import settings
        from backoffice.core.sentry import capture_exception

        trace_id = _get_trace_id()
        logger.error(
            "Unhandled exception: %s",
            type(exc).__name__,
            extra={"trace_id": trace_id, "path": request.url.path},
        )
        logger.error(traceback.format_exc())
        capture_exception(
            exc,
            context={"trace_id": trace_id, "path": request.url.path, "method": request.method},
        )

        # Don't expose internal details in production
        detail = str(exc) if settings.DEBUG else "An unexpected error occurred"
        return create_problem_response(
            status_code=500,
            code=ErrorCode.INTERNAL_ERROR,
            detail=detail,
            request=request,
            trace_id=trace_id,
            allowed_origins=allowed_origins,
        )

    return {
        "backoffice": handle_backoffice_exception,
        "http": handle_http_exception,
        "validation": handle_validation_exception,
        "generic": handle_generic_exception,
    }
