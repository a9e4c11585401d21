"""Vision model clients: send the image URL with the fixed instruction, return the raw text."""
import logging
import time
from abc import ABC, abstractmethod

from openai import AsyncOpenAI, OpenAIError

from app.core.errors import InferenceFailure
from app.prompts.analysis import build_messages

log = logging.getLogger(__name__)


class VisionClient(ABC):
    @abstractmethod
    async def analyze(self, image_url: str) -> str:
        """Return the model's text output for the image. Raises InferenceFailure."""
        ...


class OpenAIVisionClient(VisionClient):

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        *,
        timeout: float = 60.0,
        max_tokens: int = 1024,
    ) -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens

    async def analyze(self, image_url: str) -> str:
        start = time.monotonic()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=build_messages(image_url),
                max_tokens=self.max_tokens,
                timeout=self.timeout,
            )
        except OpenAIError as exc:
            log.error("Error during OpenAI chat completion call: %s", exc)
            raise InferenceFailure(str(exc) or type(exc).__name__) from exc

        log.info("Inference finished model=%s latency=%.2fs", self.model, time.monotonic() - start)

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise InferenceFailure("Inference provider returned no content")
        return content
