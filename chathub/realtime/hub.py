"""
In-process publish/subscribe for dashboard sessions.

Webhook processing runs in the threadpool while WebSocket sessions live on
the event loop, so the hub is guarded by a plain lock and subscribers hand
messages over to their own loop.
"""
import asyncio
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Set

from chathub.core.logging import get_logger

logger = get_logger(__name__)


class Subscriber(Protocol):
    def deliver(self, message: Dict[str, Any]) -> None:
        ...


INSTANCE_GROUP_PREFIX = "instance:"


def instance_group(name: str) -> str:
    """Group carrying the events of one instance only."""
    return f"{INSTANCE_GROUP_PREFIX}{name}"


def build_event(event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "event": event,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class RealtimeHub:
    """Named broadcast groups. Publishing to a group nobody joined is a no-op."""

    def __init__(self):
        self._groups: Dict[str, Set[Subscriber]] = {}
        self._lock = threading.Lock()

    def join(self, group: str, subscriber: Subscriber) -> None:
        with self._lock:
            self._groups.setdefault(group, set()).add(subscriber)
        logger.debug("Subscriber joined", extra={"extra_data": {"group": group}})

    def leave(self, group: str, subscriber: Subscriber) -> None:
        with self._lock:
            members = self._groups.get(group)
            if members is None:
                return
            members.discard(subscriber)
            if not members:
                del self._groups[group]
        logger.debug("Subscriber left", extra={"extra_data": {"group": group}})

    def leave_all(self, subscriber: Subscriber) -> None:
        with self._lock:
            for group in list(self._groups):
                self._groups[group].discard(subscriber)
                if not self._groups[group]:
                    del self._groups[group]

    def subscriber_count(self, group: str) -> int:
        with self._lock:
            return len(self._groups.get(group, ()))

    def publish(self, group: str, event: str, data: Dict[str, Any]) -> int:
        """
        Deliver ``event`` to every member of ``group``.

        Returns the number of subscribers reached. Delivery failures are
        logged and the failing subscriber dropped from every group.
        """
        with self._lock:
            members = list(self._groups.get(group, ()))
        if not members:
            return 0

        message = build_event(event, data)
        delivered = 0
        for subscriber in members:
            try:
                subscriber.deliver(message)
                delivered += 1
            except Exception as exc:
                logger.warning(
                    "Realtime delivery failed, dropping subscriber",
                    extra={"extra_data": {"group": group, "event": event, "error": str(exc)}},
                )
                self.leave_all(subscriber)
        return delivered


class QueueSubscriber:
    """
    Subscriber backed by an asyncio queue owned by one event loop.

    ``deliver`` may be called from any thread; a single consumer on the loop
    drains the queue.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, maxsize: int = 1000):
        self.loop = loop or asyncio.get_running_loop()
        self.queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=maxsize)

    def _put(self, message: Dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Realtime queue full, event dropped", extra={"extra_data": {"event": message.get("event")}})

    def deliver(self, message: Dict[str, Any]) -> None:
        if self.loop.is_closed():
            raise RuntimeError("subscriber loop is closed")
        self.loop.call_soon_threadsafe(self._put, message)

    async def get(self) -> Dict[str, Any]:
        return await self.queue.get()
