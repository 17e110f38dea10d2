from fastapi import APIRouter, Depends, HTTPException

from meetsync.deps import get_overlay
from meetsync.models.meeting import OverlaySettingsUpdate, OverlayState
from meetsync.services.overlay_mirror import OverlayMirror
from meetsync.services.subscriptions import SubscriptionError

router = APIRouter(prefix="/api/overlay", tags=["overlay"])


@router.get("", response_model=OverlayState)
async def get_overlay_state(overlay: OverlayMirror = Depends(get_overlay)):
    return overlay.state()


@router.post("/open", response_model=OverlayState)
async def open_overlay(overlay: OverlayMirror = Depends(get_overlay)):
    try:
        await overlay.open()
    except SubscriptionError as e:
        raise HTTPException(status_code=502, detail=str(e)) from None
    return overlay.state()


@router.post("/close", response_model=OverlayState)
async def close_overlay(overlay: OverlayMirror = Depends(get_overlay)):
    overlay.close()
    return overlay.state()


@router.patch("/settings", response_model=OverlayState)
async def update_overlay_settings(
    body: OverlaySettingsUpdate,
    overlay: OverlayMirror = Depends(get_overlay),
):
    if body.font_size is not None:
        overlay.font_size = body.font_size
    if body.max_captions is not None:
        overlay.resize(body.max_captions)
    return overlay.state()
