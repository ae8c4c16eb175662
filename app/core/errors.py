# app/core/errors.py
import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException


class AppError(Exception):
    """可預期的業務錯誤（4xx），由 handler 轉成統一的錯誤格式。"""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, str]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors
        self.headers = headers


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized", **kwargs: Any):
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class TooManyRequestsError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "-"


def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[List[Dict[str, str]]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "success": False,
        "message": message,
        "statusCode": status_code,
        "requestId": _request_id(request),
    }
    # 沒有欄位錯誤時不輸出 errors key
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    out = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        out.append({"field": ".".join(loc) or "root", "message": err.get("msg", "Invalid value")})
    return out


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.warning(
            "Operational error: {} ({} {})", exc.message, request.method, request.url.path
        )
        return error_response(request, exc.status_code, exc.message, exc.errors, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):
        # 統一輸出格式
        return error_response(
            request,
            exc.status_code,
            str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        # 客製化，但保持資訊節制
        return error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation failed",
            errors=_field_errors(exc),
        )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """
        每個請求：
          1️⃣ 取用或產生 X-Request-ID，並綁到 loguru context
          2️⃣ 未預期例外 → 記完整錯誤、回傳不含內部細節的 500
          3️⃣ 加上安全標頭與存取紀錄
        """
        incoming = request.headers.get("x-request-id")
        request_id = incoming if incoming else str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        with logger.contextualize(request_id=request_id):
            try:
                resp = await call_next(request)
            except Exception:
                logger.exception("Unhandled exception on {} {}", request.method, request.url.path)
                resp = error_response(
                    request,
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    "Internal server error",
                )

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "{} {} -> {} ({:.1f} ms)",
                request.method,
                request.url.path,
                resp.status_code,
                elapsed_ms,
            )

        resp.headers["X-Request-ID"] = request_id
        # 小強化：避免洩露伺服器細節
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        return resp
