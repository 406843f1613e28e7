"""
Realtime Hub Tests
===================

What we test:
    ✅ Nothing is delivered before attach() or after close()
    ✅ Image/marker events reach every client
    ✅ Comment events reach only the marker thread's subscribers
    ✅ A client whose send fails is dropped; the others still receive
    ✅ A slow client does not hold up delivery to the others
    ✅ The store emits after its commits, camelCase, without empty fields
"""

import asyncio
import uuid
from datetime import datetime, timezone

import pytest

from pinpoint.exceptions import ValidationError
from pinpoint.models import Comment, Image, Marker, topic_for_marker
from pinpoint.services.realtime_service import RealtimeHub

from conftest import RecordingClient


class BrokenClient:
    async def send_json(self, data):
        raise RuntimeError("socket closed")


class StalledClient:
    def __init__(self):
        self.release = asyncio.Event()
        self.messages = []

    async def send_json(self, data):
        await self.release.wait()
        self.messages.append(data)


def stamped(entity):
    entity.created_at = entity.updated_at = datetime.now(timezone.utc)
    return entity


def sample_image():
    return stamped(Image(id=uuid.uuid4(), user_id=uuid.uuid4(), extension="png", x=0, y=0))


def sample_marker(image_id=None):
    return stamped(Marker(id=uuid.uuid4(), image_id=image_id, x=1, y=2))


def sample_comment(marker_id):
    return stamped(Comment(id=uuid.uuid4(), marker_id=marker_id, user_id=uuid.uuid4(), text="hi"))


class TestHubDelivery:
    def setup_method(self):
        self.hub = RealtimeHub()
        self.alice = RecordingClient()
        self.bob = RecordingClient()
        self.alice_id = self.hub.connect(self.alice)
        self.bob_id = self.hub.connect(self.bob)

    @pytest.mark.asyncio
    async def test_dropped_when_not_attached(self):
        await self.hub.emit_saved(image=sample_image())
        await self.hub.emit_removed(marker_id=uuid.uuid4())
        assert self.alice.messages == []

    @pytest.mark.asyncio
    async def test_dropped_after_close(self):
        self.hub.attach()
        self.hub.close()
        await self.hub.emit_saved(image=sample_image())
        assert self.alice.messages == []
        assert self.hub.client_count == 0

    @pytest.mark.asyncio
    async def test_global_events(self):
        self.hub.attach()
        image = sample_image()
        await self.hub.emit_saved(image=image)
        await self.hub.emit_removed(image_id=image.id)

        for client in (self.alice, self.bob):
            assert client.events("saved")[0]["image"]["id"] == str(image.id)
            assert client.events("saved")[0]["image"]["userId"] == str(image.user_id)
            assert client.events("removed") == [{"imageId": str(image.id)}]

    @pytest.mark.asyncio
    async def test_free_marker_has_no_image_id(self):
        self.hub.attach()
        await self.hub.emit_saved(marker=sample_marker())
        assert "imageId" not in self.alice.events("saved")[0]["marker"]

    @pytest.mark.asyncio
    async def test_comment_events_are_scoped(self):
        self.hub.attach()
        marker = sample_marker()
        other = sample_marker()
        self.hub.subscribe(self.alice_id, topic_for_marker(marker.id))
        self.hub.subscribe(self.bob_id, topic_for_marker(other.id))

        comment = sample_comment(marker.id)
        await self.hub.emit_saved(comment=comment)
        await self.hub.emit_removed(comment_id=comment.id, comment_marker_id=marker.id)

        assert self.alice.events("saved")[0]["comment"]["markerId"] == str(marker.id)
        assert self.alice.events("removed") == [{"commentId": str(comment.id)}]
        assert self.bob.messages == []

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        self.hub.attach()
        marker = sample_marker()
        topic = topic_for_marker(marker.id)
        self.hub.subscribe(self.alice_id, topic)
        self.hub.unsubscribe(self.alice_id, topic)

        await self.hub.emit_saved(comment=sample_comment(marker.id))
        assert self.alice.messages == []
        assert self.hub.subscribers(topic) == set()

    @pytest.mark.asyncio
    async def test_broken_client_dropped(self):
        self.hub.attach()
        broken_id = self.hub.connect(BrokenClient())
        marker = sample_marker()
        self.hub.subscribe(broken_id, marker.topic)

        await self.hub.emit_saved(marker=marker)

        assert self.hub.client_count == 2
        assert self.hub.subscribers(marker.topic) == set()
        assert len(self.alice.events("saved")) == 1
        assert len(self.bob.events("saved")) == 1

    @pytest.mark.asyncio
    async def test_stalled_client_does_not_block_others(self):
        hub = RealtimeHub()
        hub.attach()
        stalled = StalledClient()
        # connected first, so it is first in line for every broadcast
        hub.connect(stalled)
        hub.connect(self.alice)

        emit = asyncio.create_task(hub.emit_saved(image=sample_image()))
        for _ in range(5):
            await asyncio.sleep(0)

        assert not emit.done()
        assert len(self.alice.events("saved")) == 1
        assert stalled.messages == []

        stalled.release.set()
        await emit
        assert len(stalled.messages) == 1

    def test_disconnect_clears_topics(self):
        topic = topic_for_marker(uuid.uuid4())
        self.hub.subscribe(self.alice_id, topic)
        self.hub.disconnect(self.alice_id)
        assert self.hub.subscribers(topic) == set()

    def test_subscribe_unknown_client_ignored(self):
        topic = topic_for_marker(uuid.uuid4())
        self.hub.subscribe("nobody", topic)
        assert self.hub.subscribers(topic) == set()


class TestStoreNotifications:
    @pytest.mark.asyncio
    async def test_marker_creation_events(self, store, db, hub, listener):
        user = await store.create_user(db, name="Ada", username="ada@example.com", password="pw")
        subscriber = RecordingClient()
        subscriber_id = hub.connect(subscriber)

        marker, comment = await store.create_marker_with_comment(
            db, image_id=None, x=0, y=0, user_id=user.id, text="seed"
        )
        # not subscribed yet: only the global marker event
        assert [m["marker"]["id"] for m in listener.events("saved")] == [str(marker.id)]

        hub.subscribe(subscriber_id, marker.topic)
        reply = await store.create_comment(db, marker, user_id=user.id, text="reply")

        assert subscriber.events("saved")[-1]["comment"]["id"] == str(reply.id)
        assert all("comment" not in m for m in listener.events("saved"))

    @pytest.mark.asyncio
    async def test_failed_write_emits_nothing(self, store, db, listener):
        with pytest.raises(ValidationError):
            await store.create_marker(db, image_id=uuid.uuid4())
        assert listener.messages == []

    @pytest.mark.asyncio
    async def test_cascade_events(self, store, db, hub, listener):
        user = await store.create_user(db, name="Ada", username="ada@example.com", password="pw")
        marker, comment = await store.create_marker_with_comment(
            db, image_id=None, x=0, y=0, user_id=user.id, text="only"
        )
        hub.subscribe(listener.client_id, marker.topic)

        await store.delete_comment(db, comment)

        assert {"commentId": str(comment.id)} in listener.events("removed")
        assert {"markerId": str(marker.id)} in listener.events("removed")
