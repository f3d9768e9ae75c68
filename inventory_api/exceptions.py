"""
RFC 7807 Problem Details error handling.

Every failure the API reports is an ``InventoryAPIError`` (a FastAPI
``HTTPException``) rendered as ``application/problem+json``. Services raise
the taxonomy classes below; routers never build error responses by hand.

See: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Optional, Dict, Any, List
from enum import Enum
from datetime import datetime, timezone
import logging
import uuid

from pydantic import BaseModel, Field
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from inventory_api.middleware.correlation import get_request_id

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://warehouse-inventory.local/problems"


def _get_trace_id() -> str:
    """Use the request id when inside a request, otherwise a fresh id."""
    request_id = get_request_id()
    if request_id and request_id != "unknown":
        return request_id
    return uuid.uuid4().hex[:12]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    # Authentication & Authorization
    UNAUTHORIZED = "AUTH_001"
    FORBIDDEN = "AUTH_002"

    # Validation
    VALIDATION_ERROR = "VAL_001"

    # Resource
    NOT_FOUND = "RES_001"
    CONFLICT = "RES_003"

    # Business Logic
    INSUFFICIENT_STOCK = "BIZ_004"

    # Store
    DATABASE_ERROR = "EXT_004"

    # Server
    INTERNAL_ERROR = "SRV_001"


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response body."""

    type: str = Field(default="about:blank", description="URI reference identifying the problem type")
    title: str = Field(description="Short, human-readable summary of the problem")
    status: int = Field(description="HTTP status code")
    detail: str = Field(description="Human-readable explanation specific to this occurrence")
    instance: Optional[str] = Field(default=None, description="Request path that produced the problem")
    code: str = Field(description="Machine-readable error code")
    timestamp: str = Field(description="ISO 8601 timestamp")
    trace_id: str = Field(description="Trace id, matches the X-Request-ID response header")
    errors: Optional[List[Dict[str, Any]]] = Field(default=None, description="Field-level validation errors")

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": f"{PROBLEM_TYPE_BASE}/biz-004",
                "title": "Bad Request",
                "status": 400,
                "detail": "Cannot remove more stock than available. Current stock: 10, requested removal: 25",
                "instance": "/api/v1/inventory/4b1c.../stock",
                "code": "BIZ_004",
                "timestamp": "2026-01-29T10:30:00Z",
                "trace_id": "abc123def456",
            }
        }
    }


_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Validation Error",
    500: "Internal Server Error",
}


def _problem_type(code: ErrorCode) -> str:
    return f"{PROBLEM_TYPE_BASE}/{code.value.lower().replace('_', '-')}"


class InventoryAPIError(HTTPException):
    """
    Base exception for the inventory API.

    Usage:
        raise InventoryAPIError(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail="Inventory item not found",
        )
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        title: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.title = title or _TITLES.get(status_code, "Error")
        self.errors = errors
        self.trace_id = _get_trace_id()
        self.timestamp = _timestamp()

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type(self.code),
            title=self.title,
            status=self.status_code,
            detail=self.detail,
            instance=instance,
            code=self.code.value,
            timestamp=self.timestamp,
            trace_id=self.trace_id,
            errors=self.errors,
        )


class NotFoundError(InventoryAPIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        detail = f"{resource} not found" if resource_id is None else f"{resource} with ID {resource_id} was not found"
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(status_code=404, code=ErrorCode.NOT_FOUND, detail=detail)


class InvalidArgumentError(InventoryAPIError):
    """Malformed input that passed schema parsing (400)."""

    def __init__(self, detail: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(status_code=400, code=ErrorCode.VALIDATION_ERROR, detail=detail, errors=errors)


class InsufficientStockError(InventoryAPIError):
    """A removal would drive stock below zero (400)."""

    def __init__(self, current_stock: int, requested: int, transfer: bool = False):
        self.current_stock = current_stock
        self.requested = requested
        verb, noun = ("transfer", "transfer") if transfer else ("remove", "removal")
        super().__init__(
            status_code=400,
            code=ErrorCode.INSUFFICIENT_STOCK,
            detail=(
                f"Cannot {verb} more stock than available. "
                f"Current stock: {current_stock}, requested {noun}: {requested}"
            ),
        )


class UnauthorizedError(InventoryAPIError):
    """Authentication required (401)."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=401,
            code=ErrorCode.UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(InventoryAPIError):
    """Permission denied (403)."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(status_code=403, code=ErrorCode.FORBIDDEN, detail=detail)


class ConflictError(InventoryAPIError):
    """Resource conflict (409)."""

    def __init__(self, detail: str):
        super().__init__(status_code=409, code=ErrorCode.CONFLICT, detail=detail)


class StoreError(InventoryAPIError):
    """The relational store failed (500)."""

    def __init__(self, detail: str = "Database operation failed"):
        super().__init__(status_code=500, code=ErrorCode.DATABASE_ERROR, detail=detail)


def translate_store_error(exc: SQLAlchemyError, conflict_detail: str = "Resource already exists") -> InventoryAPIError:
    """Map a SQLAlchemy failure onto the API error taxonomy."""
    if isinstance(exc, IntegrityError):
        return ConflictError(conflict_detail)
    logger.error("Store failure: %s", exc.__class__.__name__)
    return StoreError()


# Exception handlers for FastAPI

def _with_cors(response: JSONResponse, request: Request, allowed_origins: Optional[List[str]]) -> JSONResponse:
    # Error responses bypass CORSMiddleware when raised from dependencies
    if allowed_origins:
        origin = request.headers.get("origin", "")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
    return response


def create_problem_response(
    status_code: int,
    code: ErrorCode,
    detail: str,
    request: Request,
    errors: Optional[List[Dict[str, Any]]] = None,
    trace_id: Optional[str] = None,
    allowed_origins: Optional[List[str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create a RFC 7807 compliant JSON response."""
    problem = ProblemDetail(
        type=_problem_type(code),
        title=_TITLES.get(status_code, "Error"),
        status=status_code,
        detail=detail,
        instance=str(request.url.path),
        code=code.value,
        timestamp=_timestamp(),
        trace_id=trace_id or _get_trace_id(),
        errors=errors,
    )
    response = JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )
    return _with_cors(response, request, allowed_origins)


def create_exception_handlers(allowed_origins: List[str], debug: bool = False):
    """
    Create exception handlers with configured allowed origins for CORS.

    Usage in main.py:
        handlers = create_exception_handlers(allowed_origins)
        app.add_exception_handler(InventoryAPIError, handlers["api"])
        app.add_exception_handler(RequestValidationError, handlers["validation"])
        app.add_exception_handler(Exception, handlers["generic"])
    """

    async def handle_api_exception(request: Request, exc: InventoryAPIError) -> JSONResponse:
        logger.warning(
            "%s %s: %s", exc.code.value, request.url.path, exc.detail,
            extra={"trace_id": exc.trace_id, "status_code": exc.status_code},
        )
        response = JSONResponse(
            status_code=exc.status_code,
            content=exc.to_problem_detail(instance=str(request.url.path)).model_dump(exclude_none=True),
            media_type="application/problem+json",
            headers=exc.headers,
        )
        return _with_cors(response, request, allowed_origins)

    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Plain HTTPExceptions (framework 404/405, OAuth2 scheme) in problem form."""
        code_map = {
            400: ErrorCode.VALIDATION_ERROR,
            401: ErrorCode.UNAUTHORIZED,
            403: ErrorCode.FORBIDDEN,
            404: ErrorCode.NOT_FOUND,
            409: ErrorCode.CONFLICT,
            422: ErrorCode.VALIDATION_ERROR,
        }
        return create_problem_response(
            status_code=exc.status_code,
            code=code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
            detail=str(exc.detail),
            request=request,
            allowed_origins=allowed_origins,
            headers=getattr(exc, "headers", None),
        )

    async def handle_validation_exception(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Request-schema failures with field-level details."""
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
        trace_id = uuid.uuid4().hex[:12]
        logger.exception("Unhandled exception", extra={"trace_id": trace_id, "path": request.url.path})

        # Internal details only leave the process in debug mode
        detail = str(exc) if debug else "An unexpected error occurred"
        return create_problem_response(
            status_code=500,
            code=ErrorCode.INTERNAL_ERROR,
            detail=detail,
            request=request,
            trace_id=trace_id,
            allowed_origins=allowed_origins,
        )

    return {
        "api": handle_api_exception,
        "http": handle_http_exception,
        "validation": handle_validation_exception,
        "generic": handle_generic_exception,
    }
