import logging
from collections import deque

from meetsync.models.events import SPEECH_PARTIAL, TRANSLATION_UPDATE, SpeechPayload, TranslationUpdatePayload
from meetsync.models.meeting import OverlayCaption, OverlayState
from meetsync.services.subscriptions import SubscriptionManager
from meetsync.services.translation_matrix import TranslationMatrix

logger = logging.getLogger(__name__)


class OverlayMirror:
    """Bounded projection of the most recent finalized segments.

    Listens to the raw speech and translation streams on its own, so it can
    briefly disagree with the main ledgers around its window boundary.
    """

    def __init__(
        self,
        subscriptions: SubscriptionManager,
        max_captions: int = 4,
        font_size: int = 18,
    ):
        if max_captions < 1:
            raise ValueError("max_captions must be at least 1")
        self._subscriptions = subscriptions
        self.max_captions = max_captions
        self.font_size = font_size
        self._window: deque[OverlayCaption] = deque()
        self._translations = TranslationMatrix()
        self.is_open = False

    async def open(self) -> None:
        """Start mirroring. Raises SubscriptionError if a listener cannot be set up."""
        if self.is_open:
            return
        self.is_open = True
        subs = [
            self._subscriptions.subscribe(
                SPEECH_PARTIAL, self.on_speech, SpeechPayload, slot="overlay:speech"
            ),
            self._subscriptions.subscribe(
                TRANSLATION_UPDATE,
                self.on_translation,
                TranslationUpdatePayload,
                slot="overlay:translation",
            ),
        ]
        try:
            for sub in subs:
                await sub.ready()
        except Exception:
            self.close()
            raise
        logger.info("Caption overlay opened (max %d captions)", self.max_captions)

    def close(self) -> None:
        self._subscriptions.cancel_all()
        self.clear()
        if self.is_open:
            logger.info("Caption overlay closed")
        self.is_open = False

    def on_speech(self, payload: SpeechPayload) -> bool:
        if not payload.is_final:
            return False
        if any(caption.id == payload.segment_id for caption in self._window):
            return False
        self._window.append(
            OverlayCaption(id=payload.segment_id, text=payload.text, start_ms=payload.start_ms)
        )
        self._evict()
        return True

    def on_translation(self, payload: TranslationUpdatePayload) -> bool:
        if not any(caption.id == payload.segment_id for caption in self._window):
            logger.debug("Translation for %s outside overlay window", payload.segment_id)
            return False
        return self._translations.apply_update(
            payload.segment_id, payload.target_lang, payload.text, payload.is_final
        )

    def _evict(self) -> None:
        while len(self._window) > self.max_captions:
            evicted = self._window.popleft()
            self._translations.discard_segment(evicted.id)

    def resize(self, max_captions: int) -> None:
        if max_captions < 1:
            raise ValueError("max_captions must be at least 1")
        self.max_captions = max_captions
        self._evict()

    @property
    def captions(self) -> list[OverlayCaption]:
        return [
            caption.model_copy(update={"translations": self._translations.cells_for(caption.id)})
            for caption in self._window
        ]

    def __len__(self) -> int:
        return len(self._window)

    def clear(self) -> None:
        self._window.clear()
        self._translations.clear()

    def state(self) -> OverlayState:
        return OverlayState(
            is_open=self.is_open,
            font_size=self.font_size,
            max_captions=self.max_captions,
            captions=self.captions,
        )
