"""Two-phase translation state per (segment, target language).

Translators for different languages run in parallel with independent
latencies, so updates for one segment arrive in no particular order across
languages. Finality is sticky: once a cell is final, later pending updates for
the same cell are dropped. A final update always replaces whatever the cell
held before.
"""

import logging

from meetsync.models.transcript import TranslationCell

logger = logging.getLogger(__name__)


class TranslationMatrix:
    def __init__(self) -> None:
        # segment_id -> target_lang -> cell, languages kept in arrival order
        self._cells: dict[str, dict[str, TranslationCell]] = {}

    def apply_update(self, segment_id: str, target_lang: str, text: str, is_final: bool) -> bool:
        """Apply one translation update. Returns False when it was a no-op."""
        row = self._cells.setdefault(segment_id, {})
        current = row.get(target_lang)

        if is_final:
            cell = TranslationCell.final(text)
        else:
            if current is not None and current.is_final:
                logger.debug(
                    "Late pending translation for %s/%s ignored", segment_id, target_lang
                )
                return False
            cell = TranslationCell.pending(text)

        if current == cell:
            return False
        row[target_lang] = cell
        return True

    def lookup(self, segment_id: str, target_lang: str) -> TranslationCell | None:
        """The cell for a pair, or None when nothing was received yet."""
        return self._cells.get(segment_id, {}).get(target_lang)

    def display_text(self, segment_id: str, target_lang: str) -> str | None:
        cell = self.lookup(segment_id, target_lang)
        return cell.text if cell is not None else None

    def cells_for(self, segment_id: str) -> dict[str, TranslationCell]:
        return dict(self._cells.get(segment_id, {}))

    def languages_for(self, segment_id: str) -> list[str]:
        return list(self._cells.get(segment_id, {}))

    def pending_count(self) -> int:
        return sum(
            1 for row in self._cells.values() for cell in row.values() if not cell.is_final
        )

    def discard_segment(self, segment_id: str) -> None:
        self._cells.pop(segment_id, None)

    def as_dict(self) -> dict[str, dict[str, TranslationCell]]:
        return {segment_id: dict(row) for segment_id, row in self._cells.items() if row}

    def __len__(self) -> int:
        return sum(len(row) for row in self._cells.values())

    def clear(self) -> None:
        self._cells = {}
