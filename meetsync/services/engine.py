"""Meeting session state: reducers for every inbound stream plus session control.

Every inbound event is applied as one synchronous step on the event loop.
Commands reset or reconfigure the ledgers but never feed them; only events do.
"""

import asyncio
import logging
from typing import Any, Protocol

from pydantic import BaseModel

from meetsync.config import DEFAULT_TARGET_LANGS, MAX_TARGET_LANGS, SOURCE_LANG
from meetsync.models.events import (
    NOTES_ERROR,
    NOTES_UPDATED,
    SPEECH_PARTIAL,
    TRANSLATION_ERROR,
    TRANSLATION_UPDATE,
    NotesErrorPayload,
    NotesUpdatedPayload,
    SpeechPayload,
    TranslationErrorPayload,
    TranslationUpdatePayload,
)
from meetsync.models.meeting import ExportFormat, MeetingState
from meetsync.models.notes import PAYLOAD_MODELS, NoteCategory, NoteItem
from meetsync.models.transcript import TranscriptRow
from meetsync.services import commands as ops
from meetsync.services.commands import CommandError
from meetsync.services.event_bus import EventBus
from meetsync.services.notes_reconciler import NoteNotFoundError, NotesReconciler, coerce_payload
from meetsync.services.segment_ledger import CaptionCursor, SegmentLedger
from meetsync.services.subscriptions import SubscriptionManager
from meetsync.services.translation_matrix import TranslationMatrix

logger = logging.getLogger(__name__)


class CommandInvoker(Protocol):
    async def invoke(self, operation: str, **args: Any) -> Any: ...


def normalize_langs(langs: list[str], limit: int = MAX_TARGET_LANGS) -> list[str]:
    """Ordered, de-duplicated, capped language list."""
    result: list[str] = []
    for lang in langs:
        code = lang.strip().lower()
        if code and code not in result:
            result.append(code)
    return result[:limit]


class ReconciliationEngine:
    def __init__(
        self,
        source: EventBus,
        commands: CommandInvoker,
        source_lang: str = SOURCE_LANG,
        target_langs: list[str] | None = None,
    ):
        self._commands = commands
        self.subscriptions = SubscriptionManager(source)

        self.cursor = CaptionCursor()
        self.segments = SegmentLedger(self.cursor)
        self.translations = TranslationMatrix()
        self.notes = NotesReconciler()

        self.source_lang = source_lang
        self.target_langs = normalize_langs(target_langs or DEFAULT_TARGET_LANGS)
        self.session_id: str | None = None
        self.meeting_id: int | None = None
        self.is_transcribing = False
        self.is_translating = False

        self.revision = 0
        self._watchers: set[asyncio.Queue] = set()
        self._background_tasks: set[asyncio.Task] = set()

    # --- observers ---

    def watch(self) -> asyncio.Queue:
        """Receive the revision number after every state change."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=64)
        self._watchers.add(queue)
        return queue

    def unwatch(self, queue: asyncio.Queue) -> None:
        self._watchers.discard(queue)

    def _changed(self) -> None:
        self.revision += 1
        for queue in self._watchers:
            try:
                queue.put_nowait(self.revision)
            except asyncio.QueueFull:
                logger.warning("State watcher queue full, revision %d skipped", self.revision)

    # --- reducers ---

    def on_speech(self, payload: SpeechPayload) -> None:
        if payload.is_final:
            segment = self.segments.on_final_segment(
                payload.segment_id,
                payload.text,
                payload.language,
                payload.start_ms,
                payload.end_ms,
            )
            if segment is None:
                return
            self._changed()
            self._auto_translate(segment.id, segment.text)
        elif self.segments.on_partial_segment(payload.text, payload.segment_id):
            self._changed()

    def on_translation(self, payload: TranslationUpdatePayload) -> None:
        if self.translations.apply_update(
            payload.segment_id, payload.target_lang, payload.text, payload.is_final
        ):
            self._changed()

    def on_translation_error(self, payload: TranslationErrorPayload) -> None:
        logger.warning("Translation failed for segment %s: %s", payload.segment_id, payload.error)

    def on_notes_updated(self, payload: NotesUpdatedPayload) -> None:
        if payload.meeting_id != self.meeting_id:
            logger.warning(
                "Dropping notes for meeting %s (current meeting %s)",
                payload.meeting_id,
                self.meeting_id,
            )
            return
        added = self.notes.apply_batch(payload.meeting_id, payload.new_notes, payload.inserted_ids)
        logger.info(
            "Applied %d new notes for meeting %s (%d total)",
            len(added),
            payload.meeting_id,
            len(self.notes),
        )
        self._changed()

    def on_notes_error(self, payload: NotesErrorPayload) -> None:
        if payload.meeting_id != self.meeting_id:
            logger.debug("Ignoring notes error for meeting %s", payload.meeting_id)
            return
        self.notes.mark_failed(payload.error)
        self._changed()

    def _auto_translate(self, segment_id: str, text: str) -> None:
        if not self.is_translating or not text.strip() or not self.target_langs:
            return
        t = asyncio.create_task(self._translate(segment_id, text, list(self.target_langs)))
        self._background_tasks.add(t)
        t.add_done_callback(self._background_tasks.discard)

    async def _translate(self, segment_id: str, text: str, target_langs: list[str]) -> None:
        try:
            await self._commands.invoke(
                ops.TRANSLATE_TEXT,
                text=text,
                target_langs=target_langs,
                segment_id=segment_id,
            )
        except Exception as e:
            logger.error("Translation request for segment %s failed: %s", segment_id, e)

    # --- session control ---

    def clear(self) -> None:
        """Empty every ledger in one step."""
        self.segments.clear()
        self.translations.clear()
        self.notes.clear()
        self._changed()

    def _subscribe_all(self) -> list:
        subscribe = self.subscriptions.subscribe
        return [
            subscribe(SPEECH_PARTIAL, self.on_speech, SpeechPayload, slot=SPEECH_PARTIAL),
            subscribe(
                TRANSLATION_UPDATE,
                self.on_translation,
                TranslationUpdatePayload,
                slot=TRANSLATION_UPDATE,
            ),
            subscribe(
                TRANSLATION_ERROR,
                self.on_translation_error,
                TranslationErrorPayload,
                slot=TRANSLATION_ERROR,
            ),
            subscribe(NOTES_UPDATED, self.on_notes_updated, NotesUpdatedPayload, slot=NOTES_UPDATED),
            subscribe(NOTES_ERROR, self.on_notes_error, NotesErrorPayload, slot=NOTES_ERROR),
        ]

    async def start_meeting(
        self,
        source_lang: str | None = None,
        target_langs: list[str] | None = None,
    ) -> str:
        """Reset the ledgers, subscribe to the streams and start a backend session."""
        if source_lang:
            self.source_lang = source_lang
        if target_langs is not None:
            self.set_target_langs(target_langs)

        self.clear()
        self.meeting_id = None
        self.session_id = None

        try:
            for sub in self._subscribe_all():
                await sub.ready()
            result = await self._commands.invoke(
                ops.START_MEETING,
                src_lang=self.source_lang,
                target_langs=list(self.target_langs),
            )
        except Exception:
            self.subscriptions.cancel_all()
            raise

        self.session_id = str(result)
        try:
            self.meeting_id = int(self.session_id)
        except ValueError:
            self.meeting_id = None
        self.is_transcribing = True
        self.is_translating = True
        self.notes.mark_generating()
        logger.info(
            "Meeting %s started (%s -> %s)",
            self.session_id,
            self.source_lang,
            ",".join(self.target_langs),
        )
        self._changed()
        return self.session_id

    async def stop_meeting(self) -> None:
        """Stop the backend session, drop all subscriptions and clear the ledgers."""
        await self._commands.invoke(ops.STOP_MEETING)
        self.subscriptions.cancel_all()
        self.is_transcribing = False
        self.is_translating = False
        self.clear()
        logger.info("Meeting %s stopped", self.session_id)

    def set_translating(self, enabled: bool) -> None:
        self.is_translating = enabled
        self._changed()

    def set_target_langs(self, langs: list[str]) -> list[str]:
        normalized = normalize_langs(langs)
        if not normalized:
            raise ValueError("At least one target language is required")
        self.target_langs = normalized
        self._changed()
        return list(self.target_langs)

    def toggle_target_lang(self, lang: str) -> list[str]:
        """Add or remove one language. The last remaining language stays."""
        code = lang.strip().lower()
        if not code:
            raise ValueError("Language code must not be empty")
        if code in self.target_langs:
            remaining = [existing for existing in self.target_langs if existing != code]
            if remaining:
                self.target_langs = remaining
        elif len(self.target_langs) < MAX_TARGET_LANGS:
            self.target_langs = [*self.target_langs, code]
        self._changed()
        return list(self.target_langs)

    # --- notes ---

    def _require_note(self, note_id: int) -> NoteItem:
        note = self.notes.find(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    async def edit_note(self, note_id: int, payload: BaseModel | dict | str) -> NoteItem:
        """Persist an edit through the backend, then apply it locally."""
        note = self._require_note(note_id)
        validated = coerce_payload(PAYLOAD_MODELS[note.category], payload)
        await self._commands.invoke(
            ops.UPDATE_NOTE, note_id=note_id, content=validated.model_dump_json()
        )
        note = self.notes.edit(note_id, validated)
        self._changed()
        return note

    async def delete_note(self, note_id: int) -> NoteItem:
        self._require_note(note_id)
        await self._commands.invoke(ops.DELETE_NOTE, note_id=note_id)
        note = self.notes.remove(note_id)
        self._changed()
        return note

    def resolve_note(self, provisional_id: int, authoritative_id: int) -> NoteItem:
        """Give a provisional note the id the note store assigned to it."""
        note = self.notes.resolve(provisional_id, authoritative_id)
        logger.info("Note %s resolved to %s", provisional_id, authoritative_id)
        self._changed()
        return note

    # --- exports ---

    def _require_meeting(self) -> int:
        if self.meeting_id is None:
            raise CommandError("No meeting to export")
        return self.meeting_id

    async def export_transcript(self, fmt: ExportFormat | str, destination: str) -> str:
        fmt = ExportFormat(fmt)
        meeting_id = self._require_meeting()
        result = await self._commands.invoke(
            ops.EXPORT_TRANSCRIPT,
            meeting_id=meeting_id,
            format=fmt.value,
            path=destination,
        )
        logger.info("Exported transcript for meeting %s as %s", meeting_id, fmt.value)
        return str(result or destination)

    async def export_memo(self, destination: str) -> str:
        meeting_id = self._require_meeting()
        memo = await self._commands.invoke(ops.GENERATE_MEMO, meeting_id=meeting_id)
        result = await self._commands.invoke(
            ops.EXPORT_MEMO,
            meeting_id=meeting_id,
            memo_content=memo or "",
            path=destination,
        )
        logger.info("Exported memo for meeting %s", meeting_id)
        return str(result or destination)

    # --- read models ---

    def transcript_rows(self, lang: str | None = None) -> list[TranscriptRow]:
        target = lang or (self.target_langs[0] if self.target_langs else "")
        rows = []
        for segment in self.segments:
            cell = self.translations.lookup(segment.id, target)
            rows.append(
                TranscriptRow(
                    segment=segment,
                    target_lang=target,
                    translation=cell.text if cell else None,
                    translation_state=cell.state if cell else None,
                )
            )
        return rows

    def notes_by_category(self, category: NoteCategory | None = None) -> list[NoteItem]:
        if category is None:
            return self.notes.notes
        return self.notes.by_category(category)

    def note_counts(self) -> dict[NoteCategory, int]:
        return self.notes.counts()

    def snapshot(self) -> MeetingState:
        return MeetingState(
            revision=self.revision,
            session_id=self.session_id,
            meeting_id=self.meeting_id,
            source_lang=self.source_lang,
            target_langs=list(self.target_langs),
            is_transcribing=self.is_transcribing,
            is_translating=self.is_translating,
            is_generating_notes=self.notes.is_generating,
            caption=self.cursor.text,
            segments=self.segments.segments,
            translations=self.translations.as_dict(),
            notes=self.notes.notes,
            note_counts=self.note_counts(),
        )

    async def close(self) -> None:
        self.subscriptions.cancel_all()
        for t in list(self._background_tasks):
            t.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
