"""Tests for the protocol coordinator against a recording hub."""

import pytest

from chatroom.core import BroadcastCoordinator, ServerEvent
from chatroom.exceptions import AIServiceError


def send_payload(message_id, text, sender="alice", **extra):
    payload = {
        "id": message_id,
        "text": text,
        "senderName": sender,
        "senderId": f"{sender}-uuid",
        "type": "text",
        "sender": "USER",
    }
    payload.update(extra)
    return payload


async def join(coordinator, connection_id, name):
    await coordinator.connect(connection_id)
    return await coordinator.handle_event(
        connection_id, "user:join", {"id": connection_id, "name": name, "uuid": f"{name}-uuid"}
    )


@pytest.mark.unit
class TestJoin:

    @pytest.mark.asyncio
    async def test_join_sends_snapshot_then_announces(self, coordinator, hub, store, make_message):
        await store.append(make_message("m1", "earlier"))
        await join(coordinator, "c1", "alice")
        hub.clear()

        participant = await join(coordinator, "c2", "bob")

        assert participant.name == "bob"
        to_bob = hub.sent_to("c2")
        assert [item["event"] for item in to_bob] == [ServerEvent.MESSAGE_ALL, ServerEvent.USER_ALL]
        assert [m["id"] for m in to_bob[0]["data"]] == ["m1"]
        assert to_bob[1]["data"] == [
            {"id": "c1", "name": "alice", "uuid": "alice-uuid"},
            {"id": "c2", "name": "bob", "uuid": "bob-uuid"},
        ]
        announce = hub.broadcasts_of(ServerEvent.USER_JOIN)
        assert announce == [{
            "event": ServerEvent.USER_JOIN,
            "data": {"id": "c2", "name": "bob", "uuid": "bob-uuid"},
            "exclude": "c2",
        }]

    @pytest.mark.asyncio
    async def test_second_join_is_ignored(self, coordinator, hub, registry):
        await join(coordinator, "c1", "alice")
        hub.clear()

        result = await coordinator.handle_event("c1", "user:join", {"name": "mallory"})

        assert result is None
        assert hub.sent == []
        assert hub.broadcasts == []
        assert registry.find("c1").name == "alice"

    @pytest.mark.asyncio
    async def test_join_from_unknown_connection(self, coordinator, hub):
        assert await coordinator.handle_event("ghost", "user:join", {"name": "alice"}) is None
        assert hub.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [None, {}, {"name": ""}, "alice"])
    async def test_invalid_join_payload_is_dropped(self, coordinator, hub, registry, data):
        await coordinator.connect("c1")

        assert await coordinator.handle_event("c1", "user:join", data) is None
        assert hub.sent == []
        assert not registry.find("c1").identified


@pytest.mark.unit
class TestQueries:

    @pytest.mark.asyncio
    async def test_user_all_goes_to_requester_only(self, coordinator, hub):
        await join(coordinator, "c1", "alice")
        await coordinator.connect("c2")
        hub.clear()

        await coordinator.handle_event("c2", "user:all")

        assert hub.broadcasts == []
        reply = hub.sent_to("c2", ServerEvent.USER_ALL)
        assert [p["name"] for p in reply[0]["data"]] == ["alice", None]

    @pytest.mark.asyncio
    async def test_message_all_returns_full_log(self, coordinator, hub, store, make_message):
        await store.append(make_message("m1", "one"))
        await store.append(make_message("m2", "two"))
        await coordinator.connect("c1")

        await coordinator.handle_event("c1", "message:all", {})

        reply = hub.sent_to("c1", ServerEvent.MESSAGE_ALL)[0]["data"]
        assert [m["text"] for m in reply] == ["one", "two"]
        assert set(reply[0]) == {"id", "text", "senderType", "senderName", "senderId", "type", "createdAt"}

    @pytest.mark.asyncio
    async def test_unknown_event_is_ignored(self, coordinator, hub):
        await coordinator.connect("c1")

        assert await coordinator.handle_event("c1", "room:delete", {"all": True}) is None
        assert hub.sent == []
        assert hub.broadcasts == []


@pytest.mark.unit
class TestSend:

    @pytest.mark.asyncio
    async def test_message_is_stored_and_relayed_to_others(self, coordinator, hub, store):
        await join(coordinator, "c1", "alice")
        hub.clear()

        stored = await coordinator.handle_event(
            "c1", "message:send", send_payload("m1", "hello", clientMsgId=1712000000000)
        )
        await coordinator.drain()

        assert [m.id for m in await store.list_messages()] == ["m1"]
        relayed = hub.broadcasts_of(ServerEvent.MESSAGE_NEW)
        assert len(relayed) == 1
        assert relayed[0]["exclude"] == "c1"
        assert relayed[0]["data"]["text"] == "hello"
        assert relayed[0]["data"]["senderType"] == "USER"
        assert relayed[0]["data"]["createdAt"] == stored.to_wire()["createdAt"]

    @pytest.mark.asyncio
    async def test_missing_id_gets_server_id(self, coordinator, store):
        await coordinator.connect("c1")
        payload = send_payload(None, "no id")
        del payload["id"]

        stored = await coordinator.handle_event("c1", "message:send", payload)

        assert stored.id
        assert (await store.list_messages())[0].id == stored.id

    @pytest.mark.asyncio
    async def test_duplicate_id_is_dropped(self, coordinator, hub, store, ai_engine):
        await coordinator.connect("c1")

        await coordinator.handle_event("c1", "message:send", send_payload("m1", "first"))
        result = await coordinator.handle_event("c1", "message:send", send_payload("m1", "again"))
        await coordinator.drain()

        assert result is None
        assert [m.text for m in await store.list_messages()] == ["first"]
        assert len(hub.broadcasts_of(ServerEvent.MESSAGE_NEW)) == 1
        assert len(ai_engine.calls) == 1

    @pytest.mark.asyncio
    async def test_bot_reply_reaches_everyone(self, coordinator, hub, store, ai_engine):
        await join(coordinator, "c1", "alice")
        ai_engine.queue({"message": "3000, genius.", "isAnswerForPastQuestion": True})
        hub.clear()

        await coordinator.handle_event("c1", "message:send", send_payload("m1", "what port?"))
        await coordinator.drain()

        relayed = hub.broadcasts_of(ServerEvent.MESSAGE_NEW)
        assert [item["data"]["text"] for item in relayed] == ["what port?", "3000, genius."]
        assert relayed[1]["exclude"] is None
        assert relayed[1]["data"]["senderType"] == "BOT"
        assert [m.text for m in await store.list_messages()] == ["what port?", "3000, genius."]

    @pytest.mark.asyncio
    async def test_classification_failure_does_not_block_chat(self, coordinator, hub, store, ai_engine):
        await coordinator.connect("c1")
        ai_engine.queue(AIServiceError("upstream down"), "not json")

        await coordinator.handle_event("c1", "message:send", send_payload("m1", "first"))
        await coordinator.handle_event("c1", "message:send", send_payload("m2", "second"))
        await coordinator.drain()
        await coordinator.handle_event("c1", "message:send", send_payload("m3", "third"))
        await coordinator.drain()

        assert [m.id for m in await store.list_messages()] == ["m1", "m2", "m3"]
        assert len(hub.broadcasts_of(ServerEvent.MESSAGE_NEW)) == 3
        assert await store.list_knowledge() == []

    @pytest.mark.asyncio
    async def test_disabled_bot_is_never_consulted(self, store, registry, hub, disabled_bot):
        coordinator = BroadcastCoordinator(store, registry, disabled_bot, hub)
        await coordinator.connect("c1")

        await coordinator.handle_event("c1", "message:send", send_payload("m1", "what port?"))

        assert coordinator._bot_tasks == set()
        assert len(hub.broadcasts_of(ServerEvent.MESSAGE_NEW)) == 1

    @pytest.mark.asyncio
    async def test_invalid_send_payload_is_dropped(self, coordinator, hub, store):
        await coordinator.connect("c1")

        assert await coordinator.handle_event("c1", "message:send", {"text": "who am I?"}) is None
        assert await store.list_messages() == []
        assert hub.broadcasts == []


@pytest.mark.unit
class TestUpdate:

    @pytest.mark.asyncio
    async def test_update_rebroadcasts_the_full_log(self, coordinator, hub, store):
        await coordinator.connect("c1")
        await coordinator.handle_event("c1", "message:send", send_payload("m1", "helo"))
        await coordinator.handle_event("c1", "message:send", send_payload("m2", "world"))
        await coordinator.drain()
        hub.clear()

        await coordinator.handle_event("c1", "message:update", {"id": "m1", "text": "hello"})

        snapshot = hub.broadcasts_of(ServerEvent.MESSAGE_ALL)
        assert len(snapshot) == 1
        assert snapshot[0]["exclude"] == "c1"
        assert [m["text"] for m in snapshot[0]["data"]] == ["hello", "world"]

    @pytest.mark.asyncio
    async def test_update_unknown_id_broadcasts_unchanged_log(self, coordinator, hub, store, make_message):
        await store.append(make_message("m1", "one"))
        await coordinator.connect("c1")

        await coordinator.handle_event("c1", "message:update", {"id": "nope", "text": "x"})

        snapshot = hub.broadcasts_of(ServerEvent.MESSAGE_ALL)
        assert [m["text"] for m in snapshot[0]["data"]] == ["one"]


@pytest.mark.unit
class TestDisconnect:

    @pytest.mark.asyncio
    async def test_leave_is_announced_to_the_rest(self, coordinator, hub, registry):
        await join(coordinator, "c1", "alice")
        await join(coordinator, "c2", "bob")
        hub.clear()

        await coordinator.disconnect("c1")

        assert "c1" not in registry
        assert hub.broadcasts == [{"event": ServerEvent.USER_LEAVE, "data": "c1", "exclude": "c1"}]
        assert [p.id for p in registry.all()] == ["c2"]

    @pytest.mark.asyncio
    async def test_leaving_does_not_cancel_pending_classification(self, coordinator, hub, store, ai_engine):
        await join(coordinator, "c1", "alice")
        await join(coordinator, "c2", "bob")
        ai_engine.delay = 0.05
        ai_engine.queue({
            "message": "3000. Again.",
            "isAnswerForPastQuestion": True,
            "newAnswer": {"question": "What port?", "answer": "3000"},
        })
        hub.clear()

        await coordinator.handle_event("c1", "message:send", send_payload("m1", "It's 3000, what port was it?"))
        await coordinator.disconnect("c1")
        await coordinator.drain()

        assert [(qa.question, qa.answer) for qa in await store.list_knowledge()] == [("What port?", "3000")]
        messages = await store.list_messages()
        assert [m.text for m in messages] == ["It's 3000, what port was it?", "3000. Again."]
        bot_frames = [
            item for item in hub.broadcasts_of(ServerEvent.MESSAGE_NEW)
            if item["data"]["senderType"] == "BOT"
        ]
        assert len(bot_frames) == 1
        assert bot_frames[0]["exclude"] is None
        assert bot_frames[0]["data"]["id"] == messages[1].id

    @pytest.mark.asyncio
    async def test_anonymous_leave_is_announced_too(self, coordinator, hub):
        await coordinator.connect("c1")

        await coordinator.disconnect("c1")

        assert hub.broadcasts_of(ServerEvent.USER_LEAVE)[0]["data"] == "c1"
