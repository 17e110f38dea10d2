"""Tests for the HTTP and websocket surface."""

from fastapi.testclient import TestClient

from meetsync.models.events import SpeechPayload

from helpers import ACTION_ITEM, notes_batch, speech, translation


async def test_start_and_state(async_client):
    resp = await async_client.post("/api/meetings/start", json={"target_langs": ["vi", "ja"]})
    assert resp.status_code == 200
    assert resp.json() == {"session_id": "42", "meeting_id": 42}

    resp = await async_client.get("/api/meetings/state")
    data = resp.json()
    assert data["is_transcribing"] is True
    assert data["target_langs"] == ["vi", "ja"]
    assert data["segments"] == []


async def test_start_failure_maps_to_502(async_client, commands):
    commands.failures["start-meeting"] = "audio device busy"
    resp = await async_client.post("/api/meetings/start", json={})
    assert resp.status_code == 502
    assert resp.json()["detail"] == "audio device busy"


async def test_events_flow_into_transcript(async_client):
    await async_client.post("/api/meetings/start", json={})
    await async_client.post("/api/events/speech-partial", json=speech("s1", "hello"))
    await async_client.post("/api/events/translation-update", json=translation("s1", "vi", "xin chao", True))
    await async_client.post("/api/events/speech-partial", json=speech("s2", "wor", is_final=False))

    resp = await async_client.get("/api/meetings/transcript", params={"lang": "vi"})
    data = resp.json()
    assert data["total"] == 1
    assert data["caption"] == "wor"
    assert data["rows"][0]["translation"] == "xin chao"
    assert data["rows"][0]["translation_state"] == "final"


async def test_unknown_event_rejected(async_client):
    resp = await async_client.post("/api/events/audio-chunk", json={})
    assert resp.status_code == 404


async def test_stop_meeting(async_client, commands):
    await async_client.post("/api/meetings/start", json={})
    resp = await async_client.post("/api/meetings/stop")
    assert resp.status_code == 200
    assert resp.json()["status"] == "stopped"
    assert commands.operations()[-1] == "stop-meeting"


async def test_target_language_endpoints(async_client):
    resp = await async_client.put("/api/meetings/target-langs", json={"target_langs": []})
    assert resp.status_code == 400

    resp = await async_client.post("/api/meetings/target-langs/ja/toggle")
    assert resp.json() == {"target_langs": ["vi", "ja"]}

    resp = await async_client.put("/api/meetings/translating", json={"enabled": False})
    assert resp.json() == {"is_translating": False}


async def test_notes_endpoints(async_client):
    await async_client.post("/api/meetings/start", json={})
    await async_client.post(
        "/api/events/notes-updated",
        json=notes_batch(42, action_items=[ACTION_ITEM], inserted_ids=[5]),
    )

    resp = await async_client.get("/api/notes", params={"category": "action_item"})
    assert [n["id"] for n in resp.json()] == [5]
    resp = await async_client.get("/api/notes", params={"category": "risk"})
    assert resp.json() == []

    resp = await async_client.patch("/api/notes/5", json={"payload": {**ACTION_ITEM, "owner": "Hoa"}})
    assert resp.status_code == 200
    assert resp.json()["payload"]["owner"] == "Hoa"

    resp = await async_client.patch("/api/notes/5", json={"payload": {"owner": "no task"}})
    assert resp.status_code == 400

    resp = await async_client.delete("/api/notes/5")
    assert resp.status_code == 200
    resp = await async_client.delete("/api/notes/5")
    assert resp.status_code == 404


async def test_resolve_note_endpoint(async_client):
    await async_client.post("/api/meetings/start", json={})
    await async_client.post("/api/events/notes-updated", json=notes_batch(42, action_items=[ACTION_ITEM]))

    resp = await async_client.post("/api/notes/-1/resolve", json={"authoritative_id": 9})
    assert resp.status_code == 200
    assert resp.json()["id"] == 9

    resp = await async_client.post("/api/notes/9/resolve", json={"authoritative_id": 10})
    assert resp.status_code == 400

    resp = await async_client.post("/api/notes/-1/resolve", json={"authoritative_id": 11})
    assert resp.status_code == 404


async def test_export_endpoints(async_client, commands):
    resp = await async_client.post(
        "/api/meetings/export/transcript", json={"format": "md", "destination": "/tmp/t.md"}
    )
    assert resp.status_code == 502

    await async_client.post("/api/meetings/start", json={})
    resp = await async_client.post(
        "/api/meetings/export/transcript", json={"format": "json", "destination": "/tmp/t.json"}
    )
    assert resp.json() == {"path": "/tmp/t.json"}

    resp = await async_client.post(
        "/api/meetings/export/transcript", json={"format": "pdf", "destination": "/tmp/t.pdf"}
    )
    assert resp.status_code == 422

    commands.results["export-memo"] = "/downloads/meeting-memo-42.md"
    resp = await async_client.post("/api/meetings/export/memo", json={"destination": "/downloads"})
    assert resp.json() == {"path": "/downloads/meeting-memo-42.md"}


async def test_overlay_endpoints(async_client):
    resp = await async_client.post("/api/overlay/open")
    assert resp.json()["is_open"] is True

    for i in range(6):
        await async_client.post("/api/events/speech-partial", json=speech(f"s{i}", f"line {i}"))

    resp = await async_client.get("/api/overlay")
    assert [c["id"] for c in resp.json()["captions"]] == ["s2", "s3", "s4", "s5"]

    resp = await async_client.patch("/api/overlay/settings", json={"max_captions": 2, "font_size": 24})
    data = resp.json()
    assert [c["id"] for c in data["captions"]] == ["s4", "s5"]
    assert data["font_size"] == 24

    resp = await async_client.post("/api/overlay/close")
    assert resp.json()["captions"] == []


def test_state_socket_pushes_changes(api_app):
    with TestClient(api_app) as client:
        with client.websocket_connect("/ws/state") as ws:
            data = ws.receive_json()
            assert data["revision"] == 0
            assert data["target_langs"] == ["vi"]

            client.put("/api/meetings/translating", json={"enabled": True})
            data = ws.receive_json()
            assert data["revision"] == 1
            assert data["is_translating"] is True


def test_event_socket_feeds_bus(api_app, bus, engine):
    bus._listeners["speech-partial"] = [
        lambda payload: engine.on_speech(SpeechPayload.model_validate(payload))
    ]

    with TestClient(api_app) as client:
        with client.websocket_connect("/ws/state") as state:
            state.receive_json()
            with client.websocket_connect("/ws/events") as events:
                events.send_text("not json")
                events.send_json({"event": "unknown-event", "payload": {}})
                events.send_json({"event": "speech-partial", "payload": speech("s1", "hi")})
                data = state.receive_json()

    assert [s["id"] for s in data["segments"]] == ["s1"]
