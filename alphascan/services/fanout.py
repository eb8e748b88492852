from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Protocol

from fastapi.encoders import jsonable_encoder

log = logging.getLogger(__name__)

CONTRACTS_UPDATE = "contracts-update"
SCAN_STATUS = "scan-status"
SCAN_ERROR = "scan-error"
REQUEST_SCAN = "request-scan"

SEND_TIMEOUT = 5.0


class Subscriber(Protocol):
    async def send_json(self, data: Any) -> None: ...


def envelope(event: str, payload: Any) -> Dict[str, Any]:
    return {"event": event, "data": jsonable_encoder(payload, by_alias=True)}


class Broadcaster:
    """Event name + payload pushed to every connected subscriber."""

    def __init__(self, send_timeout: float = SEND_TIMEOUT):
        self._subscribers: Dict[int, Subscriber] = {}
        self.send_timeout = send_timeout

    @property
    def client_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, sub: Subscriber) -> None:
        self._subscribers[id(sub)] = sub

    def unsubscribe(self, sub: Subscriber) -> None:
        self._subscribers.pop(id(sub), None)

    async def send(self, sub: Subscriber, event: str, payload: Any) -> bool:
        try:
            await asyncio.wait_for(sub.send_json(envelope(event, payload)), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            log.warning("Dropping subscriber stalled on %s push", event)
            self.unsubscribe(sub)
            return False
        except Exception as e:
            log.warning("Dropping subscriber after failed %s push: %s", event, e)
            self.unsubscribe(sub)
            return False

    async def publish(self, event: str, payload: Any) -> int:
        delivered = 0
        for sub in list(self._subscribers.values()):
            if await self.send(sub, event, payload):
                delivered += 1
        return delivered
