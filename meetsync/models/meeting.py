from enum import Enum

from pydantic import BaseModel, Field

from meetsync.models.notes import NoteCategory, NoteItem
from meetsync.models.transcript import Segment, TranslationCell


class ExportFormat(str, Enum):
    TXT = "txt"
    MD = "md"
    JSON = "json"


class MeetingStartRequest(BaseModel):
    source_lang: str | None = None
    target_langs: list[str] | None = None


class MeetingStartResponse(BaseModel):
    session_id: str
    meeting_id: int | None = None


class TargetLangsUpdate(BaseModel):
    target_langs: list[str]


class TranslatingUpdate(BaseModel):
    enabled: bool


class TranscriptExportRequest(BaseModel):
    format: ExportFormat = ExportFormat.TXT
    destination: str


class MemoExportRequest(BaseModel):
    destination: str


class ExportResponse(BaseModel):
    path: str


class NoteUpdate(BaseModel):
    payload: dict


class NoteResolve(BaseModel):
    authoritative_id: int


class MeetingState(BaseModel):
    """Full display state derived from the ledgers."""

    revision: int
    session_id: str | None = None
    meeting_id: int | None = None
    source_lang: str
    target_langs: list[str]
    is_transcribing: bool
    is_translating: bool
    is_generating_notes: bool
    caption: str
    segments: list[Segment]
    translations: dict[str, dict[str, TranslationCell]]
    notes: list[NoteItem]
    note_counts: dict[NoteCategory, int]


class OverlaySettingsUpdate(BaseModel):
    font_size: int | None = Field(default=None, ge=8, le=96)
    max_captions: int | None = Field(default=None, ge=1, le=50)


class OverlayCaption(BaseModel):
    id: str
    text: str
    start_ms: int
    translations: dict[str, TranslationCell] = Field(default_factory=dict)


class OverlayState(BaseModel):
    is_open: bool
    font_size: int
    max_captions: int
    captions: list[OverlayCaption]
