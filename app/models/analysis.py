# app/models/analysis.py
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base

# image_path 欄位長度；per_image 寫入前先擋
IMAGE_PATH_MAX_LENGTH = 1024


class WordEntry(Base):
    """per_word：每個辨識出的字 / 物件一列"""

    __tablename__ = "analyzed_words"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    word: Mapped[str] = mapped_column(String(255), nullable=False)
    definition: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sample_sentence: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class ImageAnalysis(Base):
    """per_image：每次上傳一列，整份結果存在 analysis_data"""

    __tablename__ = "image_analyses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    image_path: Mapped[str] = mapped_column(String(IMAGE_PATH_MAX_LENGTH), nullable=False)
    analysis_data: Mapped[Any] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
