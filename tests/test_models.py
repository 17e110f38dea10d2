"""Tests for pydantic payload and note models."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from meetsync.models.events import NotesUpdatedPayload, SpeechPayload
from meetsync.models.notes import (
    ActionItem,
    AuthoritativeId,
    IncrementalNotes,
    KeyPoint,
    NoteCategory,
    NoteItem,
    ProvisionalId,
)
from meetsync.models.transcript import Segment, TranslationCell

from helpers import KEY_POINT


class TestIncrementalNotes:
    def test_empty(self):
        notes = IncrementalNotes.empty()
        assert notes.is_empty()
        assert notes.count() == 0

    def test_merge(self):
        notes = IncrementalNotes.empty()
        notes.merge(IncrementalNotes(key_points=[KeyPoint(**KEY_POINT)]))
        notes.merge(IncrementalNotes(action_items=[ActionItem(task="Follow up")]))
        assert notes.count() == 2
        assert not notes.is_empty()


class TestNoteItem:
    def test_id_comes_from_identity(self):
        note = NoteItem(
            identity=ProvisionalId(value=-3),
            meeting_id=1,
            category=NoteCategory.KEY_POINT,
            payload=KeyPoint(**KEY_POINT),
            created_at=datetime.now(UTC),
        )
        assert note.id == -3
        assert note.is_provisional
        dumped = note.model_dump(mode="json")
        assert dumped["id"] == -3
        assert dumped["identity"] == {"kind": "provisional", "value": -3}
        assert dumped["category"] == "key_point"

    def test_authoritative(self):
        note = NoteItem(
            identity=AuthoritativeId(value=12),
            meeting_id=1,
            category=NoteCategory.ACTION_ITEM,
            payload=ActionItem(task="Send deck"),
            created_at=datetime.now(UTC),
        )
        assert note.id == 12
        assert not note.is_provisional


def test_segment_is_immutable():
    segment = Segment(id="s1", text="hi", language="en", start_ms=0, end_ms=1, received_at=datetime.now(UTC))
    with pytest.raises(ValidationError):
        segment.text = "changed"


def test_translation_cell_constructors():
    assert TranslationCell.final("a").is_final
    assert not TranslationCell.pending("a").is_final
    assert TranslationCell.pending("a") != TranslationCell.final("a")


def test_speech_payload_requires_segment_id():
    with pytest.raises(ValidationError):
        SpeechPayload(text="hi", language="en", is_final=True)


def test_notes_payload_accepts_missing_ids():
    payload = NotesUpdatedPayload.model_validate(
        {"meeting_id": 3, "new_notes": {"key_points": [{"bogus": True}]}, "total_count": 1}
    )
    assert payload.inserted_ids is None
    assert payload.new_notes.key_points == [{"bogus": True}]
    assert payload.new_notes.risks == []
