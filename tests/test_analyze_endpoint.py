# tests/test_analyze_endpoint.py
import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.services.analysis import AnalysisService
from conftest import FakeStorage, FakeVision

pytestmark = pytest.mark.anyio

IMAGE_URL = "https://cdn.example.test/analyzed_images/cat.png"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def json_mode(monkeypatch):
    monkeypatch.setattr(settings, "ANALYSIS_INPUT_MODE", "json", raising=False)


@pytest.fixture
def multipart_mode(monkeypatch):
    monkeypatch.setattr(settings, "ANALYSIS_INPUT_MODE", "multipart", raising=False)


# --- JSON 模式 ---
async def test_json_cat_scenario(client: AsyncClient, json_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))

    r = await client.post("/api/v1/analyze-image/", json={"image": IMAGE_URL})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data == {
        "analysis": [{
            "word": "cat",
            "definition": "a small domesticated carnivorous mammal",
            "sampleSentence": "The cat slept on the windowsill.",
        }]
    }
    assert fake_vision.calls == [IMAGE_URL]
    assert r.headers["access-control-allow-origin"] == "*"


async def test_function_route_at_root(client: AsyncClient, json_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))
    r = await client.post("/", json={"image": IMAGE_URL})
    assert r.status_code == 200
    assert r.json()["analysis"][0]["word"] == "cat"


async def test_result_order_and_count_follow_model_output(client: AsyncClient, json_mode, use_service, fake_storage):
    text = (
        '[{"word":"stop","definition":"d1","sampleSentence":"s1"},'
        '{"word":"sign","definition":"d2","sampleSentence":"s2"},'
        '{"word":"road","definition":"d3","sampleSentence":"s3"}]'
    )
    use_service(AnalysisService(FakeVision(text), fake_storage))
    r = await client.post("/", json={"image": IMAGE_URL})
    assert [x["word"] for x in r.json()["analysis"]] == ["stop", "sign", "road"]


async def test_empty_array_is_a_valid_result(client: AsyncClient, json_mode, use_service, fake_storage):
    use_service(AnalysisService(FakeVision("[]"), fake_storage))
    r = await client.post("/", json={"image": IMAGE_URL})
    assert r.status_code == 200
    assert r.json() == {"analysis": []}


async def test_non_json_model_output_falls_back(client: AsyncClient, json_mode, use_service, fake_storage):
    use_service(AnalysisService(FakeVision("I see a dog and a ball."), fake_storage))
    r = await client.post("/", json={"image": IMAGE_URL})
    assert r.status_code == 200
    assert r.json()["analysis"] == [{
        "word": "Analysis Result",
        "definition": "Raw analysis from image",
        "sampleSentence": "I see a dog and a ball.",
    }]


async def test_missing_image_is_400(client: AsyncClient, json_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))
    r = await client.post("/", json={})
    assert r.status_code == 400
    assert r.json() == {"error": "No image URL provided"}
    assert fake_vision.calls == []


async def test_invalid_json_body_is_400(client: AsyncClient, json_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))
    r = await client.post("/", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert "error" in r.json()


async def test_json_mode_rejects_multipart(client: AsyncClient, json_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))
    r = await client.post("/", files={"file": ("cat.png", PNG_BYTES, "image/png")})
    assert r.status_code == 400
    assert fake_vision.calls == []
    assert fake_storage.objects == {}


async def test_inference_failure_is_500_with_provider_message(client: AsyncClient, json_mode, use_service, fake_storage):
    use_service(AnalysisService(FakeVision(error="Rate limit reached"), fake_storage))
    r = await client.post("/", json={"image": IMAGE_URL})
    assert r.status_code == 500
    assert r.json() == {"error": "Rate limit reached"}
    assert r.headers["access-control-allow-origin"] == "*"


# --- multipart 模式 ---
async def test_multipart_uploads_then_analyzes(client: AsyncClient, multipart_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))

    r = await client.post("/", files={"file": ("cat.png", PNG_BYTES, "image/png")})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["analysis"][0]["word"] == "cat"

    key = data["imagePath"]
    assert key.endswith("-cat.png")
    assert fake_storage.objects[key] == (PNG_BYTES, "image/png")
    assert fake_vision.calls == [fake_storage.get_public_url(key)]


async def test_multipart_mode_rejects_json(client: AsyncClient, multipart_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))
    r = await client.post("/", json={"image": IMAGE_URL})
    assert r.status_code == 400
    assert fake_vision.calls == []


async def test_multipart_without_file_field_is_400(client: AsyncClient, multipart_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))
    r = await client.post("/", data={"other": "x"}, files={"attachment": ("a.png", PNG_BYTES, "image/png")})
    assert r.status_code == 400
    assert r.json() == {"error": "No file provided"}


async def test_upload_failure_skips_inference(client: AsyncClient, multipart_mode, use_service, fake_vision):
    use_service(AnalysisService(fake_vision, FakeStorage(fail="bucket not found")))
    r = await client.post("/", files={"file": ("cat.png", PNG_BYTES, "image/png")})
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to upload image: bucket not found"
    assert fake_vision.calls == []


async def test_same_file_twice_gets_independent_keys(client: AsyncClient, multipart_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage))
    first = await client.post("/", files={"file": ("cat.png", PNG_BYTES, "image/png")})
    second = await client.post("/", files={"file": ("cat.png", PNG_BYTES, "image/png")})
    assert first.json()["imagePath"] != second.json()["imagePath"]
    assert len(fake_storage.objects) == 2
    assert len(fake_vision.calls) == 2


async def test_oversized_upload_is_400(client: AsyncClient, multipart_mode, use_service, fake_vision, fake_storage):
    use_service(AnalysisService(fake_vision, fake_storage, max_upload_bytes=16))
    r = await client.post("/", files={"file": ("cat.png", PNG_BYTES, "image/png")})
    assert r.status_code == 400
    assert r.json()["details"]["max_bytes"] == 16
    assert fake_storage.objects == {}
