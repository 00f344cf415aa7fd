from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from snapybara.core import exceptions as domain_exceptions


def _http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    # Field-level locations only; input values may carry user data
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
    ]
    return JSONResponse(
        status_code=422, content={"detail": "Unprocessable Entity", "errors": errors}
    )


def _unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    # Hide internal details by default
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


def _domain_error_handler(
    status_code: int, default_detail: str, headers: dict[str, str] | None = None
):
    def _handler(_: Request, exc: domain_exceptions.DomainError) -> JSONResponse:
        detail = str(exc) or default_detail
        return JSONResponse(status_code=status_code, content={"detail": detail}, headers=headers)

    return _handler


def install(app) -> None:
    # Register centralized exception handlers
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(
        domain_exceptions.NotFoundError, _domain_error_handler(404, "Not Found")
    )
    app.add_exception_handler(
        domain_exceptions.ValidationError, _domain_error_handler(400, "Bad Request")
    )
    app.add_exception_handler(
        domain_exceptions.ConflictError, _domain_error_handler(409, "Conflict")
    )
    app.add_exception_handler(
        domain_exceptions.AuthenticationError,
        _domain_error_handler(401, "Unauthorized", {"WWW-Authenticate": "Bearer"}),
    )
    app.add_exception_handler(
        domain_exceptions.PermissionDeniedError, _domain_error_handler(403, "Forbidden")
    )
    app.add_exception_handler(
        domain_exceptions.InfrastructureError,
        _domain_error_handler(503, "Service Unavailable"),
    )
    app.add_exception_handler(Exception, _unhandled_exception_handler)
