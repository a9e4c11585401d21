# app/services/persistence.py
import logging
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import PersistenceFailure
from app.models.analysis import ImageAnalysis, WordEntry
from app.schemas.analysis import AnalysisResult

log = logging.getLogger(__name__)

PER_WORD = "per_word"
PER_IMAGE = "per_image"


class AnalysisRepository:
    """
    兩種互斥的儲存格式，由 PERSISTENCE_MODE 決定：
      - per_word：每個結果一列；失敗只記 log，回傳警告字串（結果照常回給前端）
      - per_image：整份結果一列；失敗丟 PersistenceFailure（HTTP 500）
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], mode: str) -> None:
        if mode not in (PER_WORD, PER_IMAGE):
            raise ValueError(f"Unsupported persistence mode: {mode}")
        self.session_factory = session_factory
        self.mode = mode

    async def save(self, items: List[Any], image_path: str) -> Optional[str]:
        if self.mode == PER_WORD:
            return await self._save_words(items)
        await self._save_image(items, image_path)
        return None

    async def _save_words(self, items: List[Any]) -> Optional[str]:
        if not items:
            return None
        rows = []
        for item in items:
            result = AnalysisResult.from_item(item)
            rows.append(WordEntry(
                word=result.word,
                definition=result.definition,
                sample_sentence=result.sample_sentence,
            ))
        try:
            async with self.session_factory() as session:
                session.add_all(rows)
                await session.commit()
        except SQLAlchemyError as exc:
            log.warning("Failed to save analyzed words: %s", exc)
            return f"Analysis results were not saved: {exc}"
        log.info("Saved %d analyzed words", len(rows))
        return None

    async def _save_image(self, items: List[Any], image_path: str) -> None:
        record = ImageAnalysis(image_path=image_path, analysis_data=items)
        try:
            async with self.session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Failed to save analysis", details=str(exc)) from exc
        log.info("Saved analysis for %s (id=%s)", image_path, record.id)
