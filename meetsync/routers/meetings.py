import logging

from fastapi import APIRouter, Depends, HTTPException

from meetsync.deps import get_engine
from meetsync.models.meeting import (
    ExportResponse,
    MeetingStartRequest,
    MeetingStartResponse,
    MeetingState,
    MemoExportRequest,
    TargetLangsUpdate,
    TranscriptExportRequest,
    TranslatingUpdate,
)
from meetsync.models.transcript import TranscriptResponse
from meetsync.services.commands import CommandError
from meetsync.services.engine import ReconciliationEngine
from meetsync.services.subscriptions import SubscriptionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings", tags=["meetings"])


@router.post("/start", response_model=MeetingStartResponse)
async def start_meeting(
    body: MeetingStartRequest,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Reset all ledgers and start a new backend meeting session."""
    try:
        session_id = await engine.start_meeting(body.source_lang, body.target_langs)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except (CommandError, SubscriptionError) as e:
        raise HTTPException(status_code=502, detail=str(e)) from None
    return MeetingStartResponse(session_id=session_id, meeting_id=engine.meeting_id)


@router.post("/stop")
async def stop_meeting(engine: ReconciliationEngine = Depends(get_engine)):
    try:
        await engine.stop_meeting()
    except CommandError as e:
        raise HTTPException(status_code=502, detail=str(e)) from None
    return {"status": "stopped", "session_id": engine.session_id}


@router.get("/state", response_model=MeetingState)
async def get_state(engine: ReconciliationEngine = Depends(get_engine)):
    return engine.snapshot()


@router.get("/transcript", response_model=TranscriptResponse)
async def get_transcript(
    lang: str | None = None,
    engine: ReconciliationEngine = Depends(get_engine),
):
    """Finalized segments joined with one target language's translations."""
    rows = engine.transcript_rows(lang)
    return TranscriptResponse(rows=rows, caption=engine.cursor.text, total=len(rows))


@router.put("/target-langs")
async def set_target_langs(
    body: TargetLangsUpdate,
    engine: ReconciliationEngine = Depends(get_engine),
):
    try:
        langs = engine.set_target_langs(body.target_langs)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return {"target_langs": langs}


@router.post("/target-langs/{lang}/toggle")
async def toggle_target_lang(lang: str, engine: ReconciliationEngine = Depends(get_engine)):
    try:
        langs = engine.toggle_target_lang(lang)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return {"target_langs": langs}


@router.put("/translating")
async def set_translating(
    body: TranslatingUpdate,
    engine: ReconciliationEngine = Depends(get_engine),
):
    engine.set_translating(body.enabled)
    return {"is_translating": engine.is_translating}


@router.post("/export/transcript", response_model=ExportResponse)
async def export_transcript(
    body: TranscriptExportRequest,
    engine: ReconciliationEngine = Depends(get_engine),
):
    try:
        path = await engine.export_transcript(body.format, body.destination)
    except CommandError as e:
        raise HTTPException(status_code=502, detail=str(e)) from None
    return ExportResponse(path=path)


@router.post("/export/memo", response_model=ExportResponse)
async def export_memo(
    body: MemoExportRequest,
    engine: ReconciliationEngine = Depends(get_engine),
):
    try:
        path = await engine.export_memo(body.destination)
    except CommandError as e:
        raise HTTPException(status_code=502, detail=str(e)) from None
    return ExportResponse(path=path)
