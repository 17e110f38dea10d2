import logging
from typing import Any

import httpx

from meetsync.config import BACKEND_URL, COMMAND_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

START_MEETING = "start-meeting"
STOP_MEETING = "stop-meeting"
TRANSLATE_TEXT = "translate-text"
UPDATE_NOTE = "update-note"
DELETE_NOTE = "delete-note"
GENERATE_MEMO = "generate-memo"
EXPORT_TRANSCRIPT = "export-transcript"
EXPORT_MEMO = "export-memo"


class CommandError(Exception):
    """An outbound operation failed. The message is all the caller gets."""


class CommandClient:
    """Invokes named operations on the meeting backend over HTTP."""

    def __init__(
        self,
        base_url: str = BACKEND_URL,
        timeout: float = COMMAND_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def invoke(self, operation: str, **args: Any) -> Any:
        """POST the arguments to ``/invoke/{operation}`` and return its result."""
        try:
            resp = await self._client.post(f"/invoke/{operation}", json=args)
        except httpx.HTTPError as e:
            logger.error("Command %s failed: %s", operation, e)
            raise CommandError(f"{operation} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"result": body}

        if resp.status_code >= 400 or body.get("error"):
            message = body.get("error") or body.get("detail") or f"HTTP {resp.status_code}"
            logger.error("Command %s rejected: %s", operation, message)
            raise CommandError(str(message))

        return body.get("result")

    async def close(self) -> None:
        await self._client.aclose()
