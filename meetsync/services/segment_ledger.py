import logging
from datetime import UTC, datetime

from meetsync.models.transcript import Segment

logger = logging.getLogger(__name__)


class CaptionCursor:
    """The single in-flight, not yet final caption."""

    def __init__(self) -> None:
        self.text = ""
        self.segment_id: str | None = None

    def set(self, text: str, segment_id: str | None = None) -> None:
        self.text = text
        self.segment_id = segment_id

    def clear(self) -> None:
        self.text = ""
        self.segment_id = None

    @property
    def is_empty(self) -> bool:
        return not self.text


class SegmentLedger:
    """Append-only, arrival-ordered collection of finalized segments."""

    def __init__(self, cursor: CaptionCursor | None = None) -> None:
        self.cursor = cursor or CaptionCursor()
        self._order: list[str] = []
        self._segments: dict[str, Segment] = {}

    def on_final_segment(
        self,
        segment_id: str,
        text: str,
        language: str,
        start_ms: int,
        end_ms: int,
    ) -> Segment | None:
        """Append a finalized segment and clear the caption.

        Returns the new segment, or None when the id was already recorded.
        """
        if segment_id in self._segments:
            logger.debug("Duplicate final for segment %s ignored", segment_id)
            return None

        segment = Segment(
            id=segment_id,
            text=text.strip(),
            language=language,
            start_ms=start_ms,
            end_ms=end_ms,
            received_at=datetime.now(UTC),
        )
        self._segments[segment_id] = segment
        self._order.append(segment_id)
        self.cursor.clear()
        return segment

    def on_partial_segment(self, text: str, segment_id: str | None = None) -> bool:
        """Overwrite the caption. Partials for an already finalized id are stale."""
        if segment_id is not None and segment_id in self._segments:
            logger.debug("Stale partial for finalized segment %s ignored", segment_id)
            return False
        self.cursor.set(text, segment_id)
        return True

    def get(self, segment_id: str) -> Segment | None:
        return self._segments.get(segment_id)

    def __contains__(self, segment_id: object) -> bool:
        return segment_id in self._segments

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self):
        return (self._segments[segment_id] for segment_id in self._order)

    @property
    def segments(self) -> list[Segment]:
        return list(self)

    def clear(self) -> None:
        self._order = []
        self._segments = {}
        self.cursor.clear()
