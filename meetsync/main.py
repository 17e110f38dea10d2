import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from meetsync.config import EVENTS_URL, LOG_LEVEL, OVERLAY_FONT_SIZE, OVERLAY_MAX_CAPTIONS
from meetsync.routers import meetings, notes, overlay, stream
from meetsync.services.commands import CommandClient
from meetsync.services.engine import ReconciliationEngine
from meetsync.services.event_bus import EventBus, WebSocketEventSource
from meetsync.services.overlay_mirror import OverlayMirror
from meetsync.services.subscriptions import SubscriptionManager

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if EVENTS_URL:
        logger.info("Using upstream event stream at %s", EVENTS_URL)
        source: EventBus = WebSocketEventSource(EVENTS_URL)
    else:
        source = EventBus()
    commands = CommandClient()
    app.state.event_source = source
    app.state.engine = ReconciliationEngine(source, commands)
    app.state.overlay = OverlayMirror(
        SubscriptionManager(source),
        max_captions=OVERLAY_MAX_CAPTIONS,
        font_size=OVERLAY_FONT_SIZE,
    )
    logger.info("Meeting sync engine ready")
    yield
    app.state.overlay.close()
    await app.state.engine.close()
    await commands.close()
    await source.close()
    logger.info("Meeting sync engine shut down")


app = FastAPI(
    title="Meeting Sync",
    description="Reconciles live transcript, translation and note streams into one display state",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(meetings.router)
app.include_router(notes.router)
app.include_router(overlay.router)
app.include_router(stream.router)
