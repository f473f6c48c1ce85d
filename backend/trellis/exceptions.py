"""
Structured exceptions and error responses for Trellis.

Provides consistent error handling across the engine and the API with:
- Custom exception classes
- Structured error response format
- FastAPI exception handlers
"""

from typing import Any, Dict, Optional, List
from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from trellis.logging_config import get_logger


# =============================================================================
# Error Response Schema
# =============================================================================

class ErrorDetail(BaseModel):
    """Detail of a single error."""
    loc: Optional[List[str]] = None  # Location of error (e.g., ["query", "max_depth"])
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Structured error response format."""
    error: str  # Error code (e.g., "task_not_found", "cyclic_graph")
    message: str  # Human-readable message
    details: Optional[List[ErrorDetail]] = None
    request_id: Optional[str] = None


# =============================================================================
# Custom Exceptions
# =============================================================================

class TrellisException(Exception):
    """Base exception for all Trellis errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class NotFoundError(TrellisException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} with ID {resource_id} not found",
            error_code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.resource = resource
        self.resource_id = resource_id


class TaskNotFoundError(NotFoundError):
    """A root or referenced task id does not resolve in the store."""

    def __init__(self, task_id: Any):
        super().__init__("Task", str(task_id))
        self.error_code = "task_not_found"
        self.task_id = task_id


class CyclicGraphError(TrellisException):
    """The dependency subgraph reachable from a task is not a DAG."""

    def __init__(self, task_id: Any, cycle: Optional[List[Any]] = None):
        cycle = cycle or []
        super().__init__(
            message=f"Dependencies of task {task_id} contain a cycle; critical path is undefined",
            error_code="cyclic_graph",
            status_code=status.HTTP_409_CONFLICT,
            details=[{
                "loc": ["path", "task_id"],
                "msg": "Cycle: " + " -> ".join(str(node) for node in cycle),
                "type": "cycle_error",
            }] if cycle else None,
        )
        self.task_id = task_id
        self.cycle = cycle


class StoreUnavailableError(TrellisException):
    """The task store could not be read. Never retried."""

    def __init__(self, message: str = "Task store is unavailable"):
        super().__init__(
            message=message,
            error_code="store_unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class InvalidParameterError(TrellisException):
    """A parameter was rejected before any traversal started."""

    def __init__(self, parameter: str, message: str):
        super().__init__(
            message=message,
            error_code="invalid_parameter",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=[{
                "loc": ["query", parameter],
                "msg": message,
                "type": "value_error",
            }],
        )
        self.parameter = parameter


class CycleDetectedError(TrellisException):
    """Adding a dependency would create a cycle."""

    def __init__(self, predecessor_id: str, successor_id: str):
        super().__init__(
            message="Adding this dependency would create a cycle in the task graph",
            error_code="cycle_detected",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=[{
                "loc": ["body"],
                "msg": f"Dependency {predecessor_id} -> {successor_id} would create a cycle",
                "type": "cycle_error",
            }],
        )
        self.predecessor_id = predecessor_id
        self.successor_id = successor_id


class DuplicateDependencyError(TrellisException):
    """Dependency already exists."""

    def __init__(self, predecessor_id: str, successor_id: str):
        super().__init__(
            message="This dependency already exists",
            error_code="duplicate_dependency",
            status_code=status.HTTP_409_CONFLICT,
        )


class SelfDependencyError(TrellisException):
    """Task cannot depend on itself."""

    def __init__(self, task_id: str):
        super().__init__(
            message="A task cannot depend on itself",
            error_code="self_dependency",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def trellis_exception_handler(request: Request, exc: TrellisException) -> JSONResponse:
    """Handle TrellisException and return structured response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = get_logger("trellis.error")
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "details": None,
        },
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(TrellisException, trellis_exception_handler)
    # Optionally catch all unhandled exceptions
    # app.add_exception_handler(Exception, generic_exception_handler)
