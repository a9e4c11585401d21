# app/schemas/analysis.py
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AnalysisResult(BaseModel):
    """一個辨識出的字 / 物件。模型回傳的欄位不做驗證，缺的補空字串。"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    word: str = ""
    definition: str = ""
    sample_sentence: str = Field("", alias="sampleSentence")

    @classmethod
    def from_item(cls, item: Any) -> "AnalysisResult":
        if not isinstance(item, dict):
            return cls(word=str(item))
        return cls(
            word=str(item.get("word") or ""),
            definition=str(item.get("definition") or ""),
            sample_sentence=str(item.get("sampleSentence") or ""),
        )


class AnalysisEnvelope(BaseModel):
    # 模型輸出原樣轉回，不限定每個元素的形狀
    analysis: List[Any]
    imagePath: Optional[str] = None
    warning: Optional[str] = None


class ErrorOut(BaseModel):
    error: str
    details: Optional[Any] = None
