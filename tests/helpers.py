"""Fakes and payload builders shared by the tests."""

import asyncio

from meetsync.services.commands import CommandError
from meetsync.services.event_bus import EventBus


class FakeCommands:
    """Records outbound operations and answers from canned results."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.results: dict = {"start-meeting": "42"}
        self.failures: dict[str, str] = {}

    async def invoke(self, operation, **args):
        self.calls.append((operation, args))
        if operation in self.failures:
            raise CommandError(self.failures[operation])
        return self.results.get(operation)

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]


class GatedBus(EventBus):
    """Listeners are only established once the gate opens."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def listen(self, event_name, callback):
        await self.gate.wait()
        return await super().listen(event_name, callback)


class LeakyBus(EventBus):
    """Unlisten does nothing, so callbacks stay registered."""

    async def listen(self, event_name, callback):
        await super().listen(event_name, callback)
        return lambda: None


class RegisterThenFailBus(EventBus):
    """The callback is registered locally before the upstream request fails.

    With ``event_name`` set, only the first listen for that name fails.
    """

    def __init__(self, event_name=None):
        super().__init__()
        self.event_name = event_name

    async def listen(self, event_name, callback):
        unlisten = await super().listen(event_name, callback)
        if self.event_name is None:
            raise ConnectionError("upstream listen rejected")
        if event_name == self.event_name:
            self.event_name = ""
            raise ConnectionError("upstream listen rejected")
        return unlisten


class FailingBus(EventBus):
    async def listen(self, event_name, callback):
        raise ConnectionError("event channel unavailable")


def speech(segment_id, text, is_final=True, start_ms=0, end_ms=1000, language="en"):
    return {
        "segment_id": segment_id,
        "text": text,
        "language": language,
        "start_ms": start_ms,
        "end_ms": end_ms,
        "is_final": is_final,
    }


def translation(segment_id, lang, text, is_final):
    return {"segment_id": segment_id, "target_lang": lang, "text": text, "is_final": is_final}


def notes_batch(meeting_id, key_points=(), decisions=(), action_items=(), risks=(), inserted_ids=None):
    return {
        "meeting_id": meeting_id,
        "new_notes": {
            "key_points": list(key_points),
            "decisions": list(decisions),
            "action_items": list(action_items),
            "risks": list(risks),
        },
        "total_count": 0,
        "inserted_ids": inserted_ids,
    }


KEY_POINT = {"topic": "Budget", "summary": "Q3 budget approved in principle", "timestamp": "00:01:10"}
DECISION = {"decision": "Ship on Friday", "rationale": "QA signed off", "timestamp": "00:04:00"}
ACTION_ITEM = {"task": "Send release notes", "owner": "Lan", "deadline": "Thursday"}
RISK = {"risk": "Vendor delay", "impact": "high", "timestamp": "00:07:30"}
