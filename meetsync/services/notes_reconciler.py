"""Merges incrementally extracted note batches into one flat collection.

Batches only append. Each item takes the next id the note store reported for
the batch; when the store reported fewer ids than items (or none), the item
gets a provisional negative id from a session-local counter. Provisional ids
are replaced only through ``resolve``.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from meetsync.models.events import RawNotesBatch
from meetsync.models.notes import (
    CATEGORY_FIELDS,
    PAYLOAD_MODELS,
    AuthoritativeId,
    IncrementalNotes,
    NoteCategory,
    NoteIdentity,
    NoteItem,
    ProvisionalId,
)

logger = logging.getLogger(__name__)


class NoteNotFoundError(KeyError):
    pass


def coerce_payload(model: type[BaseModel], raw: Any) -> BaseModel:
    """Validate a note payload given as a model, a dict or a JSON string."""
    if isinstance(raw, model):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if isinstance(raw, str | bytes):
        return model.model_validate_json(raw)
    return model.model_validate(raw)


class NotesReconciler:
    def __init__(self) -> None:
        self._notes: list[NoteItem] = []
        self._next_provisional = -1
        self.is_generating = False

    def _provisional_id(self) -> ProvisionalId:
        identity = ProvisionalId(value=self._next_provisional)
        self._next_provisional -= 1
        return identity

    def apply_batch(
        self,
        meeting_id: int,
        batch: RawNotesBatch | IncrementalNotes | dict,
        inserted_ids: list[int] | None = None,
    ) -> list[NoteItem]:
        """Append every valid item of a batch. Returns the items that were added.

        Always clears the generating indicator, including for empty batches.
        """
        if isinstance(batch, dict):
            batch = RawNotesBatch.model_validate(batch)

        ids = list(inserted_ids or [])
        id_index = 0
        added: list[NoteItem] = []
        now = datetime.now(UTC)

        for field, category, model in CATEGORY_FIELDS:
            for raw in getattr(batch, field):
                identity: NoteIdentity
                if id_index < len(ids):
                    identity = AuthoritativeId(value=ids[id_index])
                else:
                    identity = self._provisional_id()
                id_index += 1

                try:
                    payload = coerce_payload(model, raw)
                except ValidationError as e:
                    logger.warning(
                        "Skipping malformed %s note for meeting %s: %s",
                        category.value,
                        meeting_id,
                        e.errors()[:1],
                    )
                    continue

                if self.find(identity.value) is not None:
                    logger.debug("Note %s already present, skipping", identity.value)
                    continue

                item = NoteItem(
                    identity=identity,
                    meeting_id=meeting_id,
                    category=category,
                    payload=payload,
                    created_at=now,
                )
                self._notes.append(item)
                added.append(item)

        if ids and len(ids) != id_index:
            logger.warning(
                "Note batch for meeting %s had %d items but %d ids",
                meeting_id,
                id_index,
                len(ids),
            )

        self.is_generating = False
        return added

    def find(self, note_id: int) -> NoteItem | None:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def _require(self, note_id: int) -> NoteItem:
        note = self.find(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    def edit(self, note_id: int, new_payload: BaseModel | dict | str) -> NoteItem:
        """Replace a note's payload. The category cannot change."""
        note = self._require(note_id)
        note.payload = coerce_payload(PAYLOAD_MODELS[note.category], new_payload)
        return note

    def remove(self, note_id: int) -> NoteItem:
        note = self._require(note_id)
        self._notes.remove(note)
        return note

    def resolve(self, provisional_id: int, authoritative_id: int) -> NoteItem:
        """Swap a provisional id for the id the note store assigned."""
        note = self._require(provisional_id)
        if not note.is_provisional:
            raise ValueError(f"Note {provisional_id} already has an authoritative id")
        if self.find(authoritative_id) is not None:
            raise ValueError(f"Note id {authoritative_id} is already in use")
        note.identity = AuthoritativeId(value=authoritative_id)
        return note

    def mark_generating(self) -> None:
        self.is_generating = True

    def mark_failed(self, error: str) -> None:
        logger.warning("Note generation failed: %s", error)
        self.is_generating = False

    def by_category(self, category: NoteCategory) -> list[NoteItem]:
        return [note for note in self._notes if note.category is category]

    def counts(self) -> dict[NoteCategory, int]:
        counts = {category: 0 for _, category, _ in CATEGORY_FIELDS}
        for note in self._notes:
            counts[note.category] += 1
        return counts

    @property
    def notes(self) -> list[NoteItem]:
        return list(self._notes)

    def __len__(self) -> int:
        return len(self._notes)

    def clear(self) -> None:
        self._notes = []
        self._next_provisional = -1
        self.is_generating = False
