from fastapi.requests import HTTPConnection

from meetsync.services.engine import ReconciliationEngine
from meetsync.services.event_bus import EventBus
from meetsync.services.overlay_mirror import OverlayMirror


# HTTPConnection so the same dependencies resolve for websocket routes
def get_engine(conn: HTTPConnection) -> ReconciliationEngine:
    return conn.app.state.engine


def get_overlay(conn: HTTPConnection) -> OverlayMirror:
    return conn.app.state.overlay


def get_event_source(conn: HTTPConnection) -> EventBus:
    return conn.app.state.event_source
