from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail=None, extra: dict | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.extra = extra or {}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _body(request: Request, message: str, detail=None, extra: dict | None = None) -> dict:
    body = {"success": False, "error": message}
    if extra:
        body.update(extra)
    if detail is not None and not request.app.state.settings.is_production:
        body["details"] = detail
    return body


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(request, exc.message, exc.detail, exc.extra),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body(request, "Invalid request", errors),
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body(request, "Database error", str(exc)),
    )


def register_error_handlers(app):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
