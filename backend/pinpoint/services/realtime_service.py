"""
Pinpoint Backend — Realtime Change Notifier
============================================

What:  Fans out "saved" / "removed" events to connected WebSocket clients.
How:   One process-wide hub. Image and marker events go to every client;
       comment events go only to clients subscribed to the comment's marker
       thread (`Marker/{markerId}/Comment`).
Who:   EntityStore emits after each committed mutation; the `/realtime`
       WebSocket route connects clients and manages their subscriptions.

Delivery contract:
    - Before `attach()` (and after `close()`) every emit is dropped.
    - Events are never buffered or retried.
    - A client whose send fails is disconnected from the hub.

Membership is only mutated on the event loop; fan-out iterates over copies
so a client dropped mid-broadcast does not disturb the loop.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, Optional, Protocol, Set

from pinpoint.models import Comment, Image, Marker, topic_for_marker
from pinpoint.schemas.image import ImageOut
from pinpoint.schemas.marker import CommentOut, MarkerOut
from pinpoint.schemas.realtime import Removed, Saved, wire

logger = logging.getLogger(__name__)


class RealtimeClient(Protocol):
    """Anything that can receive a JSON message (a Starlette WebSocket)."""

    async def send_json(self, data: Any) -> None:
        ...


class RealtimeHub:
    def __init__(self):
        self._attached = False
        self._clients: Dict[str, RealtimeClient] = {}
        # topic → client ids, and the reverse index for cheap disconnects
        self._topics: Dict[str, Set[str]] = {}
        self._memberships: Dict[str, Set[str]] = {}

    # ── Lifecycle ─────────────────────────────────────────────────────────
    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self) -> None:
        """Start delivering events (application startup)."""
        self._attached = True
        logger.info("Realtime hub attached")

    def close(self) -> None:
        """Stop delivering events and forget every client (application shutdown)."""
        self._attached = False
        count = len(self._clients)
        self._clients.clear()
        self._topics.clear()
        self._memberships.clear()
        logger.info("Realtime hub closed (%d clients dropped)", count)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    # ── Clients & Topics ──────────────────────────────────────────────────
    def connect(self, client: RealtimeClient) -> str:
        client_id = uuid.uuid4().hex
        self._clients[client_id] = client
        self._memberships[client_id] = set()
        logger.debug("Realtime client %s connected", client_id)
        return client_id

    def disconnect(self, client_id: str) -> None:
        self._clients.pop(client_id, None)
        for topic in self._memberships.pop(client_id, set()):
            members = self._topics.get(topic)
            if members is None:
                continue
            members.discard(client_id)
            if not members:
                del self._topics[topic]
        logger.debug("Realtime client %s disconnected", client_id)

    def subscribe(self, client_id: str, topic: str) -> None:
        if client_id not in self._clients:
            return
        self._topics.setdefault(topic, set()).add(client_id)
        self._memberships[client_id].add(topic)

    def unsubscribe(self, client_id: str, topic: str) -> None:
        members = self._topics.get(topic)
        if members is not None:
            members.discard(client_id)
            if not members:
                del self._topics[topic]
        self._memberships.get(client_id, set()).discard(topic)

    def subscribers(self, topic: str) -> Set[str]:
        return set(self._topics.get(topic, ()))

    # ── Emits ─────────────────────────────────────────────────────────────
    async def emit_saved(
        self,
        image: Optional[Image] = None,
        marker: Optional[Marker] = None,
        comment: Optional[Comment] = None,
    ) -> None:
        if not self._attached:
            return

        if image is not None or marker is not None:
            payload = Saved(
                image=ImageOut.model_validate(image) if image is not None else None,
                marker=MarkerOut.model_validate(marker) if marker is not None else None,
            )
            await self._broadcast(wire("saved", payload))

        if comment is not None:
            payload = Saved(comment=CommentOut.model_validate(comment))
            await self._publish(topic_for_marker(comment.marker_id), wire("saved", payload))

    async def emit_removed(
        self,
        image_id: Optional[uuid.UUID] = None,
        marker_id: Optional[uuid.UUID] = None,
        comment_id: Optional[uuid.UUID] = None,
        comment_marker_id: Optional[uuid.UUID] = None,
    ) -> None:
        """
        Announce a deletion.

        `comment_marker_id` names the thread a removed comment belonged to;
        the comment event is only published to that thread's subscribers.
        """
        if not self._attached:
            return

        if image_id is not None or marker_id is not None:
            payload = Removed(image_id=image_id, marker_id=marker_id)
            await self._broadcast(wire("removed", payload))

        if comment_id is not None and comment_marker_id is not None:
            payload = Removed(comment_id=comment_id)
            await self._publish(topic_for_marker(comment_marker_id), wire("removed", payload))

    # ── Fan-out ───────────────────────────────────────────────────────────
    # Sends run concurrently; `_send` never raises.
    async def _broadcast(self, message: dict) -> None:
        await self._fan_out(list(self._clients), message)

    async def _publish(self, topic: str, message: dict) -> None:
        await self._fan_out(self.subscribers(topic), message)

    async def _fan_out(self, client_ids: Iterable[str], message: dict) -> None:
        await asyncio.gather(*(self._send(client_id, message) for client_id in client_ids))

    async def _send(self, client_id: str, message: dict) -> None:
        client = self._clients.get(client_id)
        if client is None:
            return
        try:
            await client.send_json(message)
        except Exception as e:
            # Closed socket or broken transport: the client is gone
            logger.warning("Dropping realtime client %s: %s", client_id, e)
            self.disconnect(client_id)
