# app/core/errors.py
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger(__name__)


class AnalysisError(Exception):
    """分析流程的錯誤基底；status_code 決定回給呼叫端的 HTTP 狀態。"""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        body: dict = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class MalformedRequest(AnalysisError):
    status_code = 400


class UploadFailure(AnalysisError):
    status_code = 500


class InferenceFailure(AnalysisError):
    status_code = 500


class PersistenceFailure(AnalysisError):
    status_code = 500


class InvalidFileType(Exception):
    """前端驗證失敗：不是圖片，不會送出任何請求。"""


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AnalysisError)
    async def analysis_exc_handler(request: Request, exc: AnalysisError):
        log.error("%s: %s", type(exc).__name__, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):
        # 統一輸出格式 { error }
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Malformed request", "details": jsonable_encoder(exc.errors())},
        )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        resp = await call_next(request)
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        return resp
