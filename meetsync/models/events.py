from typing import Any

from pydantic import BaseModel, Field

SPEECH_PARTIAL = "speech-partial"
TRANSLATION_UPDATE = "translation-update"
TRANSLATION_ERROR = "translation-error"
NOTES_UPDATED = "notes-updated"
NOTES_ERROR = "notes-error"

INBOUND_EVENTS = (
    SPEECH_PARTIAL,
    TRANSLATION_UPDATE,
    TRANSLATION_ERROR,
    NOTES_UPDATED,
    NOTES_ERROR,
)


class SpeechPayload(BaseModel):
    text: str
    language: str
    start_ms: int = 0
    end_ms: int = 0
    is_final: bool
    segment_id: str


class TranslationUpdatePayload(BaseModel):
    segment_id: str
    text: str
    target_lang: str
    is_final: bool


class TranslationErrorPayload(BaseModel):
    segment_id: str
    error: str


class RawNotesBatch(BaseModel):
    """Unvalidated note items; each one is checked on its own when applied."""

    key_points: list[Any] = Field(default_factory=list)
    decisions: list[Any] = Field(default_factory=list)
    action_items: list[Any] = Field(default_factory=list)
    risks: list[Any] = Field(default_factory=list)


class NotesUpdatedPayload(BaseModel):
    meeting_id: int
    new_notes: RawNotesBatch
    total_count: int = 0
    inserted_ids: list[int] | None = None


class NotesErrorPayload(BaseModel):
    meeting_id: int
    error: str


class InboundEvent(BaseModel):
    """Frame accepted on the event ingress socket."""

    event: str
    payload: dict[str, Any] = Field(default_factory=dict)
