"""
Error taxonomy for the resume subsystem.

Services raise these; the app maps them to HTTP responses through
``resume_service_error_handler``. Messages for storage/internal failures are
replaced with a generic text in production so internal details never reach
clients.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse

from jobtracker.app.core.config import settings
from jobtracker.app.core.logging_config import get_logger

logger = get_logger("core.errors")


class ResumeServiceError(Exception):
    """Base class for all resume subsystem errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    public_message: str = "An unexpected error occurred"
    expose_message: bool = True

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.public_message
        self.details = details or {}
        super().__init__(self.message)

    def client_message(self) -> str:
        if self.expose_message or not settings.is_production:
            return self.message
        return self.public_message


class ValidationError(ResumeServiceError):
    """Bad input or failed file checks. Raised before any mutation."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    public_message = "Validation failed"

    def __init__(self, message: str | None = None, errors: list[str] | None = None, details: dict | None = None):
        self.errors = list(errors or [])
        super().__init__(message or (self.errors[0] if self.errors else None), details)


class ConflictError(ResumeServiceError):
    """Duplicate version name for the same owner."""

    status_code = status.HTTP_409_CONFLICT
    code = "RESOURCE_CONFLICT"
    public_message = "A resume with this version name already exists"


class NotFoundError(ResumeServiceError):
    """Missing resource, or one owned by someone else. Both look the same to callers."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "RESOURCE_NOT_FOUND"
    public_message = "Resource not found"

    def __init__(self, resource: str = "Resource", details: dict | None = None):
        self.resource = resource
        super().__init__(f"{resource} not found", details)


class StorageError(ResumeServiceError):
    """Blob backend failure during upload/delete/stat."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "STORAGE_ERROR"
    public_message = "File storage is unavailable"
    expose_message = False


class InternalError(ResumeServiceError):
    """Unexpected failure, including the final path commit of an upload."""

    expose_message = False


def error_detail(exc: ResumeServiceError) -> dict:
    detail: dict = {"code": exc.code, "message": exc.client_message()}
    if isinstance(exc, ValidationError) and exc.errors:
        detail["errors"] = exc.errors
    return detail


async def resume_service_error_handler(request: Request, exc: ResumeServiceError) -> JSONResponse:
    """FastAPI exception handler: service error -> {"detail": {code, message, errors?}}."""
    log = logger.warning if exc.status_code >= 500 else logger.info
    log(
        "Request failed method=%s path=%s status=%s code=%s message=%s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": error_detail(exc)})
