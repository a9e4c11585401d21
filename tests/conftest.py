# tests/conftest.py
import asyncio
import os
from typing import List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ---- 測試期環境變數（先於 app 載入）----
os.environ.setdefault("ENV", "test")
os.environ.setdefault("STORAGE_LOCAL_DIR", "./.test-storage")

from app.main import app  # noqa: E402
from app.db.session import engine  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.models import analysis as _analysis_models  # noqa: E402,F401  註冊資料表
from app.api.v1.endpoints.analyze import get_analysis_service  # noqa: E402
from app.core.errors import InferenceFailure, UploadFailure  # noqa: E402
from app.services.analysis import AnalysisService  # noqa: E402
from app.services.inference import VisionClient  # noqa: E402
from app.services.storage import ObjectStorage  # noqa: E402

CAT_RESPONSE = (
    '[{"word":"cat","definition":"a small domesticated carnivorous mammal",'
    '"sampleSentence":"The cat slept on the windowsill."}]'
)


@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    """測試前 create_all，測試後 drop_all（用 asyncio.run 避免事件圈衝突）。"""
    async def init_models():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    async def drop_models():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(init_models())
    yield
    asyncio.run(drop_models())


@pytest.fixture(scope="session")
def anyio_backend():
    """讓 pytest 使用 asyncio event loop。"""
    return "asyncio"


class FakeVision(VisionClient):
    """假模型：記錄收到的 URL，回固定文字或丟錯。"""

    def __init__(self, text: str = CAT_RESPONSE, error: Optional[str] = None) -> None:
        self.text = text
        self.error = error
        self.calls: List[str] = []

    async def analyze(self, image_url: str) -> str:
        self.calls.append(image_url)
        if self.error:
            raise InferenceFailure(self.error)
        return self.text


class FakeStorage(ObjectStorage):
    def __init__(self, fail: Optional[str] = None) -> None:
        self.fail = fail
        self.objects: dict = {}

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail:
            raise UploadFailure(f"Failed to upload image: {self.fail}")
        self.objects[key] = (data, content_type)

    def get_public_url(self, key: str) -> str:
        return f"https://cdn.example.test/analyzed_images/{key}"


@pytest.fixture
def fake_vision():
    return FakeVision()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def use_service():
    """把 endpoint 用的 service 換成測試組好的；測試結束自動還原。"""
    def _use(service: AnalysisService) -> AnalysisService:
        app.dependency_overrides[get_analysis_service] = lambda: service
        return service

    yield _use
    app.dependency_overrides.pop(get_analysis_service, None)


@pytest_asyncio.fixture
async def client():
    """使用 ASGITransport 直接掛載 app，不需啟動伺服器。"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
