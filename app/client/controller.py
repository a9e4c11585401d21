"""
Client-side upload flow as an explicit state machine.

    idle -> validating -> (uploading) -> analyzing -> done | error

One analysis at a time per controller: a new file is refused while a request
is in flight. `cancel()` aborts the pending request and returns to idle.
JSON mode always uploads to object storage first and sends the public URL.
"""
from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional

import httpx

from app.core.errors import InvalidFileType, UploadFailure
from app.schemas.analysis import AnalysisResult
from app.services.storage import ObjectStorage, make_object_key

log = logging.getLogger(__name__)

MSG_INVALID_FILE_TYPE = "Please upload an image file."
MSG_ANALYSIS_FAILED = "There was an error analyzing your image."
MSG_IN_PROGRESS = "An image is already being analyzed."


class UploadState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    DONE = "done"
    ERROR = "error"


_BUSY_STATES = {UploadState.VALIDATING, UploadState.UPLOADING, UploadState.ANALYZING}


class UploadInProgress(RuntimeError):
    pass


class AnalysisRequestError(Exception):
    """The analysis endpoint answered with an error (or not at all)."""


@dataclass
class SelectedFile:
    filename: str
    content_type: str
    data: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> "SelectedFile":
        # 跟瀏覽器一樣，宣告的型別只看副檔名
        p = Path(path)
        content_type, _ = mimetypes.guess_type(p.name)
        return cls(filename=p.name, content_type=content_type or "application/octet-stream", data=p.read_bytes())

    @property
    def is_image(self) -> bool:
        return (self.content_type or "").lower().startswith("image/")

    def as_data_url(self) -> str:
        return f"data:{self.content_type};base64,{base64.b64encode(self.data).decode()}"


@dataclass
class UploadSession:
    file: Optional[SelectedFile] = None
    preview_url: Optional[str] = None
    state: UploadState = UploadState.IDLE
    error: Optional[str] = None
    warning: Optional[str] = None
    image_path: Optional[str] = None
    results: List[AnalysisResult] = field(default_factory=list)


class UploadController:

    def __init__(
        self,
        http: httpx.AsyncClient,
        endpoint: str,
        *,
        mode: str = "json",
        storage: Optional[ObjectStorage] = None,
        on_change: Optional[Callable[[UploadSession], Any]] = None,
    ) -> None:
        if mode not in ("json", "multipart"):
            raise ValueError(f"Unsupported mode: {mode}")
        if mode == "json" and storage is None:
            raise ValueError("json mode needs an object storage to upload to")
        self.http = http
        self.endpoint = endpoint
        self.mode = mode
        self.storage = storage
        self.on_change = on_change
        self.session = UploadSession()
        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False

    @property
    def busy(self) -> bool:
        return self.session.state in _BUSY_STATES

    def _set(self, state: UploadState) -> None:
        self.session.state = state
        if self.on_change is not None:
            self.on_change(self.session)

    async def select_file(self, file: SelectedFile) -> UploadSession:
        """Drop / file-picker event. Returns the session once it settles."""
        if self.busy:
            raise UploadInProgress(MSG_IN_PROGRESS)

        # 新的選擇：先清掉上一次的結果，避免舊結果閃現
        self.session = UploadSession(file=file)
        self._set(UploadState.VALIDATING)

        if not file.is_image:
            self.session.error = MSG_INVALID_FILE_TYPE
            self._set(UploadState.IDLE)
            raise InvalidFileType(MSG_INVALID_FILE_TYPE)

        self._cancel_requested = False
        self._task = asyncio.create_task(self._run(file))
        try:
            await self._task
        except asyncio.CancelledError:
            self.session.results = []
            self._set(UploadState.IDLE)
            # 只有 cancel() 發起的取消在這裡吃掉；外層的取消（wait_for 逾時等）照樣往上丟
            if not self._cancel_requested:
                raise
            log.info("Analysis of %s cancelled", file.filename)
        except (UploadFailure, AnalysisRequestError, httpx.HTTPError) as exc:
            log.error("Error analyzing image: %s", exc)
            self._fail(_message(exc))
        except Exception as exc:
            log.exception("Unexpected error analyzing %s", file.filename)
            self._fail(str(exc) or MSG_ANALYSIS_FAILED)
        finally:
            self._task = None
            self._cancel_requested = False
            # on_change 自己丟錯時也不能卡在忙碌狀態
            if self.session.state in _BUSY_STATES:
                self.session.state = UploadState.ERROR
                self.session.error = self.session.error or MSG_ANALYSIS_FAILED
        return self.session

    def _fail(self, message: str) -> None:
        self.session.results = []
        self.session.error = message
        self._set(UploadState.ERROR)

    def cancel(self) -> bool:
        """Abort the in-flight request (navigation away, teardown)."""
        if self._task is None or self._task.done():
            return False
        self._cancel_requested = True
        return self._task.cancel()

    async def _run(self, file: SelectedFile) -> None:
        if self.mode == "multipart":
            self.session.preview_url = file.as_data_url()
            self._set(UploadState.ANALYZING)
            response = await self.http.post(
                self.endpoint,
                files={"file": (file.filename, file.data, file.content_type)},
            )
        else:
            image_url = await self._image_reference(file)
            self.session.preview_url = image_url
            self._set(UploadState.ANALYZING)
            response = await self.http.post(self.endpoint, json={"image": image_url})

        body = _read_body(response)
        items = body.get("analysis") or []
        self.session.results = [AnalysisResult.from_item(item) for item in items]
        self.session.image_path = body.get("imagePath")
        self.session.warning = body.get("warning")
        self._set(UploadState.DONE)

    async def _image_reference(self, file: SelectedFile) -> str:
        self._set(UploadState.UPLOADING)
        key = make_object_key(file.filename)
        await self.storage.upload(key, file.data, file.content_type)
        return self.storage.get_public_url(key)


def _read_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        body = None

    if response.status_code >= 400:
        message = body.get("error") if isinstance(body, dict) else None
        raise AnalysisRequestError(message or response.text or MSG_ANALYSIS_FAILED)
    if not isinstance(body, dict) or not isinstance(body.get("analysis", []), list):
        raise AnalysisRequestError("Unexpected response from the analysis service")
    return body


def _message(exc: Exception) -> str:
    if isinstance(exc, UploadFailure):
        return exc.message
    return str(exc) or MSG_ANALYSIS_FAILED
