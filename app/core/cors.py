# app/core/cors.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from app.core.config import settings

log = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred during image analysis"
ALLOW_METHODS = "POST, GET, OPTIONS"


def cors_headers() -> dict:
    return {
        "Access-Control-Allow-Origin": settings.CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Headers": ", ".join(settings.CORS_ALLOW_HEADERS),
    }


def register_cors(app: FastAPI) -> None:
    """
    所有回應（含錯誤與 404）都帶 CORS 標頭；OPTIONS 預檢直接回空 body，不進路由。
    CORSMiddleware 只在有 Origin 時才加標頭，且預檢 body 不是空的，所以自己處理。
    """

    @app.middleware("http")
    async def cors_and_catch_all(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(
                status_code=200,
                headers={**cors_headers(), "Access-Control-Allow-Methods": ALLOW_METHODS},
            )

        try:
            resp = await call_next(request)
        except Exception as exc:
            # 最外層兜底：未預期錯誤一律 500 { error }
            log.exception("Unhandled error in %s %s", request.method, request.url.path)
            resp = JSONResponse(status_code=500, content={"error": str(exc) or UNEXPECTED_ERROR})

        for key, value in cors_headers().items():
            resp.headers[key] = value
        return resp
