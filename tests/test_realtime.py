"""
Tests for the realtime hub and the dashboard WebSocket.
"""
import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from chathub.realtime.hub import QueueSubscriber, RealtimeHub
from chathub.repositories.instances import InstanceRepository
from chathub.schemas.entities import InstanceUpdate

from conftest import RecordingSubscriber, login, message_item, post_webhook


class BrokenSubscriber:
    def deliver(self, message):
        raise RuntimeError("socket gone")


class TestRealtimeHub:
    def test_publish_without_subscribers_is_noop(self):
        assert RealtimeHub().publish("admin", "new_message", {"id": "m1"}) == 0

    def test_publish_reaches_group_members_only(self):
        hub = RealtimeHub()
        admin, other = RecordingSubscriber(), RecordingSubscriber()
        hub.join("admin", admin)
        hub.join("other", other)

        assert hub.publish("admin", "new_chat", {"id": "c1"}) == 1
        assert admin.events("new_chat") == [{"id": "c1"}]
        assert other.messages == []

    def test_leave_and_leave_all(self):
        hub = RealtimeHub()
        subscriber = RecordingSubscriber()
        hub.join("a", subscriber)
        hub.join("b", subscriber)

        hub.leave("a", subscriber)
        assert hub.subscriber_count("a") == 0
        assert hub.subscriber_count("b") == 1

        hub.leave_all(subscriber)
        assert hub.subscriber_count("b") == 0

    def test_failing_subscriber_is_dropped(self):
        hub = RealtimeHub()
        good = RecordingSubscriber()
        hub.join("admin", BrokenSubscriber())
        hub.join("admin", good)

        assert hub.publish("admin", "new_message", {"id": "m1"}) == 1
        assert hub.subscriber_count("admin") == 1
        assert len(good.messages) == 1

    def test_queue_subscriber_delivers_from_other_thread(self):
        async def scenario():
            subscriber = QueueSubscriber()
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, subscriber.deliver, {"event": "pong", "data": {}})
            return await asyncio.wait_for(subscriber.get(), timeout=1)

        assert asyncio.run(scenario())["event"] == "pong"


class TestDashboardSocket:
    def test_anonymous_socket_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect("/ws") as websocket:
                websocket.receive_json()
        assert excinfo.value.code == 1008

    def test_ping(self, admin_client):
        with admin_client.websocket_connect("/ws") as websocket:
            websocket.send_json({"action": "ping"})
            assert websocket.receive_json()["event"] == "pong"

    def test_invalid_frame_reports_error(self, admin_client):
        with admin_client.websocket_connect("/ws") as websocket:
            websocket.send_text("not json")
            assert websocket.receive_json()["event"] == "error"

    def test_joined_socket_receives_new_messages(self, admin_client):
        with admin_client.websocket_connect("/ws") as websocket:
            websocket.send_json({"action": "join", "group": "admin"})
            joined = websocket.receive_json()
            assert joined["event"] == "joined"
            assert joined["data"] == {"group": "admin"}

            post_webhook(admin_client, {"event": "messages.upsert", "instance": "shop1", "data": message_item("m1")})

            events = {}
            while "new_message" not in events:
                frame = websocket.receive_json()
                events[frame["event"]] = frame["data"]

            assert events["new_message"]["id"] == "m1"
            assert events["new_message"]["content"] == "hola"
            assert "raw_data" not in events["new_message"]
            assert events["new_chat"]["id"] == "123@s.whatsapp.net"


class TestSocketTenancy:
    @pytest.fixture
    def owned_instance(self, app, client, client_user):
        """Instance "mine" owned by the client-role user."""
        user, _ = client_user
        post_webhook(client, {"event": "chats.upsert", "instance": "mine", "data": {"id": "seed@g.us"}})
        with app.state.database.session() as db:
            repository = InstanceRepository(db)
            repository.update(repository.get_by_name("mine").id, InstanceUpdate(user_id=user.id))
        return "mine"

    def test_client_cannot_join_admin_group(self, client, client_user):
        user, password = client_user
        login(client, user.email, password)

        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"action": "join", "group": "admin"})
            frame = websocket.receive_json()

        assert frame["event"] == "error"
        assert frame["data"]["group"] == "admin"

    def test_client_receives_only_owned_instance_events(self, client, client_user, owned_instance):
        user, password = client_user
        login(client, user.email, password)

        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"action": "join", "group": "instance:other"})
            assert websocket.receive_json()["event"] == "error"
            websocket.send_json({"action": "join", "group": f"instance:{owned_instance}"})
            assert websocket.receive_json()["event"] == "joined"

            other = message_item("o1", "999@s.whatsapp.net", message={"conversation": "private text"})
            post_webhook(client, {"event": "messages.upsert", "instance": "other", "data": other})
            post_webhook(client, {"event": "messages.upsert", "instance": owned_instance, "data": message_item("m1")})

            frames = []
            while not any(frame["event"] == "new_message" for frame in frames):
                frames.append(websocket.receive_json())

        assert {frame["data"]["owner"] for frame in frames} == {owned_instance}
        assert [f["data"]["id"] for f in frames if f["event"] == "new_message"] == ["m1"]
