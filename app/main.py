# app/main.py
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from app.core.config import Settings, settings
from app.core.cors import register_cors
from app.core.logging import setup_logging
from app.core.errors import register_error_handlers
from app.api.v1.router import api_router
from app.api.v1.endpoints.analyze import router as analyze_router
from app.db.session import AsyncSessionLocal, engine
from app.services.analysis import AnalysisService
from app.services.inference import OpenAIVisionClient
from app.services.persistence import AnalysisRepository
from app.services.storage import build_storage

# Monitoring
import sentry_sdk
from prometheus_fastapi_instrumentator import Instrumentator

logger = setup_logging(settings.LOG_LEVEL)
log = logging.getLogger(__name__)


def _validate_secrets(s: Settings) -> None:
    """
    部署前檢查：prod/staging/preview 不允許缺模型金鑰或 storage 憑證。
    """
    env = (s.ENV or "").lower()
    if env in {"prod", "production", "staging", "preview"}:
        missing = []
        if not s.OPENAI_API_KEY:
            missing.append("OPENAI_API_KEY")
        if s.STORAGE_BACKEND == "supabase":
            if not s.STORAGE_URL:
                missing.append("STORAGE_URL")
            if not s.STORAGE_SERVICE_KEY:
                missing.append("STORAGE_SERVICE_KEY")
        if missing:
            raise RuntimeError(
                f"Missing config for {', '.join(missing)} in ENV={s.ENV}. "
                "Please set them via environment variables."
            )


def build_analysis_service(s: Settings, openai_client: AsyncOpenAI) -> AnalysisService:
    """外部 client 每個 process 只建一次，之後每個請求共用。"""
    vision = OpenAIVisionClient(
        openai_client,
        s.VISION_MODEL,
        timeout=s.INFERENCE_TIMEOUT_SEC,
        max_tokens=s.INFERENCE_MAX_TOKENS,
    )
    repository: Optional[AnalysisRepository] = None
    if s.PERSISTENCE_MODE != "none":
        repository = AnalysisRepository(AsyncSessionLocal, s.PERSISTENCE_MODE)
    return AnalysisService(
        vision,
        build_storage(s),
        repository,
        max_upload_bytes=s.MAX_UPLOAD_BYTES,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    if not settings.OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    openai_client = AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        timeout=settings.INFERENCE_TIMEOUT_SEC,
    )
    service = build_analysis_service(settings, openai_client)
    app.state.analysis_service = service
    log.info(
        "Analysis service ready: input=%s persistence=%s storage=%s model=%s",
        settings.ANALYSIS_INPUT_MODE,
        settings.PERSISTENCE_MODE,
        settings.STORAGE_BACKEND,
        settings.VISION_MODEL,
    )
    try:
        yield
    finally:
        await openai_client.close()
        await service.storage.aclose()
        await engine.dispose()
        log.info("Analysis service shut down")


def create_app() -> FastAPI:
    # 基本安全檢查
    _validate_secrets(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # ---- Sentry 初始化（若 SENTRY_DSN 未設定就略過）----
    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            environment=settings.SENTRY_ENV,
        )

    # ---- Prometheus /metrics ----
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    # 統一錯誤處理 + CORS（CORS 要在最外層，錯誤回應才會帶到標頭）
    register_error_handlers(app)
    register_cors(app)

    # 本機 storage：讓產生的 public URL 真的讀得到
    if settings.STORAGE_BACKEND == "local":
        storage_dir = Path(settings.STORAGE_LOCAL_DIR)
        storage_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/storage", StaticFiles(directory=storage_dir), name="storage")

    # === API 路由 ===
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    # 函式路由：POST /
    app.include_router(analyze_router, tags=["analysis"])

    @app.get("/", summary="Root")
    async def root():
        return {"app": settings.APP_NAME, "env": settings.ENV}

    @app.get("/healthz", tags=["ops"])
    async def healthz():
        return {"ok": True}

    @app.get("/readyz", tags=["ops"])
    async def readyz(request: Request):
        return {"ready": getattr(request.app.state, "analysis_service", None) is not None}

    log.info("Application initialized env=%s", settings.ENV)
    return app


# Uvicorn 進入點
app = create_app()
