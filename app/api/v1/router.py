# app/api/v1/router.py
from fastapi import APIRouter

from .endpoints import analyze, health

# === API v1 主路由 ===
api_router = APIRouter()

# 系統健康檢查
api_router.include_router(health.router, prefix="/health", tags=["health"])

# 圖片分析（上傳 → 模型 → 結果）
api_router.include_router(analyze.router, prefix="/analyze-image", tags=["analysis"])
