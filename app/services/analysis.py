"""Image analysis pipeline: (upload) -> inference -> parse -> (persist)."""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from app.core.errors import MalformedRequest
from app.models.analysis import IMAGE_PATH_MAX_LENGTH
from app.services.inference import VisionClient
from app.services.persistence import PER_IMAGE, AnalysisRepository
from app.services.response_parser import parse_analysis
from app.services.storage import ObjectStorage, make_object_key

log = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    analysis: List[Any]
    image_path: Optional[str] = None
    warning: Optional[str] = None


class AnalysisService:
    """
    每次呼叫互不相干；共用的只有注入進來的外部 client（模型、storage、DB）。
    步驟照順序跑，前一步的輸出是下一步的輸入，不做平行或重試。
    """

    def __init__(
        self,
        vision: VisionClient,
        storage: ObjectStorage,
        repository: Optional[AnalysisRepository] = None,
        *,
        max_upload_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.vision = vision
        self.storage = storage
        self.repository = repository
        self.max_upload_bytes = max_upload_bytes

    async def analyze_reference(self, image_url: str) -> AnalysisOutcome:
        if not isinstance(image_url, str) or not image_url.strip():
            raise MalformedRequest("No image URL provided")
        image_url = image_url.strip()
        self._check_reference(image_url)
        log.info("Analyzing image: %.200s", image_url)
        return await self._run(image_url, record_path=image_url)

    def _check_reference(self, image_url: str) -> None:
        if image_url[:5].lower() == "data:":
            # base64 約 4/3 倍，再留一點給 "data:<type>;base64," 前綴
            if len(image_url) > self.max_upload_bytes * 4 // 3 + 256:
                raise MalformedRequest(
                    "Image file is too large",
                    details={"max_bytes": self.max_upload_bytes},
                )
            if self._stores_reference:
                raise MalformedRequest("Inline data URLs cannot be saved; upload the image and send its URL")
        elif self._stores_reference and len(image_url) > IMAGE_PATH_MAX_LENGTH:
            raise MalformedRequest(
                "Image URL is too long",
                details={"max_length": IMAGE_PATH_MAX_LENGTH, "length": len(image_url)},
            )

    @property
    def _stores_reference(self) -> bool:
        return self.repository is not None and self.repository.mode == PER_IMAGE

    async def analyze_upload(self, filename: Optional[str], content_type: Optional[str], data: bytes) -> AnalysisOutcome:
        if not data:
            raise MalformedRequest("No image file provided")
        if len(data) > self.max_upload_bytes:
            raise MalformedRequest(
                "Image file is too large",
                details={"max_bytes": self.max_upload_bytes, "size": len(data)},
            )

        key = make_object_key(filename)
        # 上傳失敗直接丟 UploadFailure，不會呼叫模型
        await self.storage.upload(key, data, content_type or "application/octet-stream")
        public_url = self.storage.get_public_url(key)
        log.info("Analyzing uploaded image %s -> %s", key, public_url)

        outcome = await self._run(public_url, record_path=key)
        outcome.image_path = key
        return outcome

    async def _run(self, image_url: str, record_path: str) -> AnalysisOutcome:
        text = await self.vision.analyze(image_url)
        parsed = parse_analysis(text)

        warning = None
        if self.repository is not None:
            warning = await self.repository.save(parsed.items, record_path)

        return AnalysisOutcome(analysis=parsed.items, warning=warning)
