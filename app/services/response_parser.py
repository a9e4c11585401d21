"""Turn the model's free-form text into the result list."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List

log = logging.getLogger(__name__)

FALLBACK_WORD = "Analysis Result"
FALLBACK_DEFINITION = "Raw analysis from image"

# 模型常把 JSON 包在 ```json ... ``` 裡
_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


class ResponseParseFailure(ValueError):
    pass


@dataclass
class ParsedAnalysis:
    items: List[Any]
    parsed: bool
    raw_text: str


def _strip_fence(text: str) -> str:
    s = text.strip()
    m = _FENCE_RE.match(s)
    return m.group(1).strip() if m else s


def load_items(text: str) -> List[Any]:
    """Parse a JSON array out of the model text; raise ResponseParseFailure otherwise."""
    try:
        data = json.loads(_strip_fence(text or ""))
    except json.JSONDecodeError as exc:
        raise ResponseParseFailure(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ResponseParseFailure(f"Expected a JSON array, got {type(data).__name__}")
    return data


def fallback_items(raw_text: str) -> List[dict]:
    return [{
        "word": FALLBACK_WORD,
        "definition": FALLBACK_DEFINITION,
        "sampleSentence": raw_text,
    }]


def parse_analysis(text: str) -> ParsedAnalysis:
    """
    解析失敗不往外丟：改回一筆 fallback，sampleSentence 放原始文字。
    成功時元素原樣保留（順序 = 模型輸出順序）。
    """
    try:
        return ParsedAnalysis(items=load_items(text), parsed=True, raw_text=text)
    except ResponseParseFailure as exc:
        log.warning("Failed to parse model response (%s): %r", exc, text)
        return ParsedAnalysis(items=fallback_items(text), parsed=False, raw_text=text)
