# app/api/v1/endpoints/analyze.py
import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from app.core.config import settings
from app.core.errors import MalformedRequest
from app.schemas.analysis import AnalysisEnvelope, ErrorOut
from app.services.analysis import AnalysisOutcome, AnalysisService

router = APIRouter()

_ERROR_RESPONSES: dict = {400: {"model": ErrorOut}, 500: {"model": ErrorOut}}


def get_analysis_service(request: Request) -> AnalysisService:
    """lifespan 建好的 service；測試用 dependency_overrides 換掉。"""
    service = getattr(request.app.state, "analysis_service", None)
    if service is None:
        raise RuntimeError("Analysis service is not initialized")
    return service


def _content_type(request: Request) -> str:
    return (request.headers.get("content-type") or "").split(";", 1)[0].strip().lower()


async def _read_json_image(request: Request) -> str:
    if _content_type(request) != "application/json":
        raise MalformedRequest("Expected a JSON body with an image URL")
    try:
        body: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise MalformedRequest("Request body is not valid JSON")
    if not isinstance(body, dict):
        raise MalformedRequest("Expected a JSON object with an image URL")
    image = body.get("image")
    if not isinstance(image, str) or not image.strip():
        raise MalformedRequest("No image URL provided")
    return image


async def _read_multipart_file(request: Request) -> UploadFile:
    if _content_type(request) != "multipart/form-data":
        raise MalformedRequest("Expected a multipart form with a file field")
    form = await request.form()
    upload = form.get("file")
    # 字串欄位不算檔案
    if not isinstance(upload, UploadFile):
        raise MalformedRequest("No file provided")
    return upload


def _envelope(outcome: AnalysisOutcome) -> dict:
    # 只省略外層的 None；analysis 內容原樣回傳
    body: dict = {"analysis": outcome.analysis}
    if outcome.image_path is not None:
        body["imagePath"] = outcome.image_path
    if outcome.warning is not None:
        body["warning"] = outcome.warning
    return body


@router.post(
    "/",
    responses={200: {"model": AnalysisEnvelope}, **_ERROR_RESPONSES},
    summary="Identify words/objects in an image",
)
async def analyze_image(request: Request, service: AnalysisService = Depends(get_analysis_service)):
    """
    依部署設定只接受一種輸入：
    - json：`{"image": "<url>"}`
    - multipart：表單欄位 `file`
    另一種格式一律 400。
    """
    if settings.ANALYSIS_INPUT_MODE == "multipart":
        upload = await _read_multipart_file(request)
        try:
            data = await upload.read()
        finally:
            await upload.close()
        outcome = await service.analyze_upload(upload.filename, upload.content_type, data)
    else:
        image_url = await _read_json_image(request)
        outcome = await service.analyze_reference(image_url)

    return _envelope(outcome)
