from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class Segment(BaseModel):
    """One finalized unit of original-language speech."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    language: str
    start_ms: int
    end_ms: int
    received_at: datetime


class CellState(str, Enum):
    PENDING = "pending"
    FINAL = "final"


class TranslationCell(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: CellState
    text: str

    @classmethod
    def pending(cls, text: str) -> "TranslationCell":
        return cls(state=CellState.PENDING, text=text)

    @classmethod
    def final(cls, text: str) -> "TranslationCell":
        return cls(state=CellState.FINAL, text=text)

    @property
    def is_final(self) -> bool:
        return self.state is CellState.FINAL


class TranscriptRow(BaseModel):
    """A segment joined with its translation for one target language."""

    segment: Segment
    target_lang: str
    translation: str | None = None
    translation_state: CellState | None = None


class TranscriptResponse(BaseModel):
    rows: list[TranscriptRow]
    caption: str
    total: int
