import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from meetsync.deps import get_engine
from meetsync.models.meeting import NoteResolve, NoteUpdate
from meetsync.models.notes import NoteCategory, NoteItem
from meetsync.services.commands import CommandError
from meetsync.services.engine import ReconciliationEngine
from meetsync.services.notes_reconciler import NoteNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["notes"])


@router.get("", response_model=list[NoteItem])
async def list_notes(
    category: NoteCategory | None = None,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Notes in insertion order, optionally restricted to one category."""
    return engine.notes_by_category(category)


@router.patch("/{note_id}", response_model=NoteItem)
async def update_note(
    note_id: int,
    body: NoteUpdate,
    engine: ReconciliationEngine = Depends(get_engine),
):
    try:
        return await engine.edit_note(note_id, body.payload)
    except NoteNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found") from None
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except CommandError as e:
        raise HTTPException(status_code=502, detail=str(e)) from None


@router.delete("/{note_id}")
async def delete_note(note_id: int, engine: ReconciliationEngine = Depends(get_engine)):
    try:
        await engine.delete_note(note_id)
    except NoteNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found") from None
    except CommandError as e:
        raise HTTPException(status_code=502, detail=str(e)) from None
    return {"id": note_id, "deleted": True}


@router.post("/{note_id}/resolve", response_model=NoteItem)
async def resolve_note(
    note_id: int,
    body: NoteResolve,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Replace a provisional note id with the one the note store assigned."""
    try:
        return engine.resolve_note(note_id, body.authoritative_id)
    except NoteNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found") from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
