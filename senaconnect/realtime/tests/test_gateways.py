from __future__ import annotations

import logging

import pytest
from asgiref.sync import async_to_sync

from senaconnect.realtime.gateways import ChatGateway
from senaconnect.realtime.gateways import ConnectionState
from senaconnect.realtime.gateways import EventsGateway
from senaconnect.realtime.gateways import FriendsGateway
from senaconnect.realtime.gateways import room_for_conversation
from senaconnect.realtime.payloads import NewMessage

from .fakes import FakeTransport


def connect(gateway, connection_id, user_id=None):
    async_to_sync(gateway.on_connect)(connection_id, user_id)


def register(gateway, connection_id, user_id):
    return async_to_sync(gateway.on_message)(
        connection_id, {"type": "register", "userId": user_id}
    )


def disconnect(gateway, connection_id):
    return async_to_sync(gateway.on_disconnect)(connection_id)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def events(transport):
    return EventsGateway(transport)


@pytest.fixture
def chat(transport):
    return ChatGateway(transport)


@pytest.fixture
def friends(transport):
    return FriendsGateway(transport)


class TestLifecycle:
    def test_states_follow_connect_register_disconnect(self, events):
        assert events.state("c1") is ConnectionState.CLOSED
        connect(events, "c1", 5)
        assert events.state("c1") is ConnectionState.OPEN_UNREGISTERED

        assert register(events, "c1", 5) is True
        assert events.state("c1") is ConnectionState.OPEN_REGISTERED
        assert events.user_for("c1") == 5

        assert disconnect(events, "c1") == 5
        assert events.state("c1") is ConnectionState.CLOSED
        assert not events.is_user_connected(5)

    @pytest.mark.parametrize("claimed", [None, "5", 0, -1, True, 5.0])
    def test_invalid_user_id_is_ignored(self, events, claimed, caplog):
        connect(events, "c1", 5)
        with caplog.at_level(logging.WARNING):
            assert register(events, "c1", claimed) is False
        assert events.state("c1") is ConnectionState.OPEN_UNREGISTERED
        assert "invalid userId" in caplog.text

    def test_claim_must_match_handshake_identity(self, events, caplog):
        connect(events, "c1", 5)
        with caplog.at_level(logging.WARNING):
            assert register(events, "c1", 6) is False
        assert not events.is_user_connected(6)
        assert "claimed user 6" in caplog.text

    def test_anonymous_connection_cannot_register(self, events):
        connect(events, "anon")
        assert register(events, "anon", 5) is False
        assert events.state("anon") is ConnectionState.OPEN_UNREGISTERED

    def test_messages_after_close_are_ignored(self, events):
        connect(events, "c1", 5)
        disconnect(events, "c1")
        assert register(events, "c1", 5) is False
        assert events.state("c1") is ConnectionState.CLOSED

    def test_non_register_and_malformed_messages_are_ignored(self, events):
        connect(events, "c1", 5)
        assert async_to_sync(events.on_message)("c1", {"type": "ping"}) is False
        assert async_to_sync(events.on_message)("c1", "register") is False
        assert events.state("c1") is ConnectionState.OPEN_UNREGISTERED

    def test_disconnect_unknown_connection_is_noop(self, events):
        assert disconnect(events, "never-seen") is None

    def test_duplicate_registration_delivers_once(self, events, transport):
        connect(events, "c1", 1)
        register(events, "c1", 1)
        register(events, "c1", 1)

        async_to_sync(events.notify_event_deleted)(42, [1])

        assert transport.sent == [("c1", "eventDeleted", {"eventId": 42})]


class TestEventsGateway:
    def test_two_tabs_then_one_closes(self, events, transport):
        connect(events, "c1", 1)
        connect(events, "c2", 1)
        register(events, "c1", 1)
        register(events, "c2", 1)

        async_to_sync(events.notify_event_unregistration)(3, 1)
        assert sorted(cid for cid, _e, _p in transport.sent) == ["c1", "c2"]

        disconnect(events, "c1")
        transport.sent.clear()
        async_to_sync(events.notify_event_unregistration)(3, 1)
        assert transport.sent == [("c2", "eventUnregistration", {"eventId": 3})]

    def test_published_event_is_broadcast_to_unregistered_connections(
        self, events, transport
    ):
        connect(events, "anon")
        async_to_sync(events.notify_event_published)({"id": 1, "title": "Jazz night"})

        assert len(transport.broadcasts) == 1
        event_type, payload = transport.broadcasts[0]
        assert event_type == "eventPublished"
        assert payload["event"] == {"id": 1, "title": "Jazz night"}
        assert payload["message"] == "New event published: Jazz night"
        assert "timestamp" in payload

    def test_created_goes_to_creator_only(self, events, transport):
        connect(events, "creator", 1)
        connect(events, "other", 2)
        register(events, "creator", 1)
        register(events, "other", 2)

        async_to_sync(events.notify_event_created)(1, {"id": 9, "title": "Draft"})

        assert transport.sent == [("creator", "eventCreated", {"id": 9, "title": "Draft"})]

    def test_update_of_draft_to_published_broadcasts(self, events, transport):
        connect(events, "c1", 1)
        register(events, "c1", 1)

        async_to_sync(events.notify_event_updated)({"id": 1, "title": "T"}, [1], was_published=True)

        assert [e for e, _p in transport.broadcasts] == ["eventPublished"]
        assert transport.sent == []

    def test_update_goes_to_attendees(self, events, transport):
        connect(events, "c1", 1)
        register(events, "c1", 1)

        async_to_sync(events.notify_event_updated)({"id": 1}, [1, 2])

        assert transport.sent == [("c1", "eventUpdated", {"id": 1})]

    def test_registration_message_names_attendee(self, events, transport):
        connect(events, "creator", 1)
        register(events, "creator", 1)

        async_to_sync(events.notify_event_registration)(
            1, {"id": 4, "title": "Run"}, {"id": 2, "name": "Ana", "email": "a@x.io"}
        )

        (cid, event_type, payload), = transport.sent
        assert (cid, event_type) == ("creator", "eventRegistration")
        assert payload["message"] == "Ana registered for your event: Run"
        assert payload["attendee"]["id"] == 2

    def test_post_notifications_use_camel_case(self, events, transport):
        connect(events, "author", 1)
        register(events, "author", 1)

        async_to_sync(events.notify_post_liked)(1, 10, {"id": 2}, 3)
        async_to_sync(events.notify_post_commented)(1, 10, {"id": 7, "content": "nice"})

        (_c1, liked_type, liked), (_c2, commented_type, commented) = transport.sent
        assert liked_type == "postLiked"
        assert liked["postId"] == 10
        assert liked["likesCount"] == 3
        assert commented_type == "postCommented"
        assert commented["comment"]["content"] == "nice"


class TestChatGateway:
    def _online(self, chat, connection_id, user_id):
        connect(chat, connection_id, user_id)
        register(chat, connection_id, user_id)

    def test_join_requires_registration(self, chat, transport):
        connect(chat, "c1", 1)
        assert async_to_sync(chat.join_conversation)("c1", 3) is None
        assert transport.events() == ["error"]
        assert chat.members(3) == frozenset()

    def test_join_enters_room_and_acks(self, chat, transport):
        self._online(chat, "c1", 1)
        ack = async_to_sync(chat.join_conversation)("c1", 3)

        assert ack.to_payload() == {"conversationId": 3, "ok": True, "note": None}
        assert transport.rooms[room_for_conversation(3)] == {"c1"}
        assert transport.room_events("conversation_3") == ["userJoined"]
        assert transport.sent_to("c1")[-1][0] == "joinedConversation"

    def test_join_twice_reports_already_joined(self, chat, transport):
        self._online(chat, "c1", 1)
        async_to_sync(chat.join_conversation)("c1", 3)
        ack = async_to_sync(chat.join_conversation)("c1", 3)

        assert ack.note == "already_joined"
        assert transport.room_events("conversation_3") == ["userJoined"]

    def test_leave_and_disconnect_clean_up_rooms(self, chat, transport):
        self._online(chat, "c1", 1)
        self._online(chat, "c2", 2)
        async_to_sync(chat.join_conversation)("c1", 3)
        async_to_sync(chat.join_conversation)("c2", 3)

        assert async_to_sync(chat.leave_conversation)("c1", 3) is True
        assert async_to_sync(chat.leave_conversation)("c1", 3) is False
        assert chat.members(3) == frozenset({"c2"})

        disconnect(chat, "c2")
        assert chat.members(3) == frozenset()
        assert transport.room_events("conversation_3").count("userLeft") == 2

    def test_typing_skips_sender(self, chat, transport):
        self._online(chat, "c1", 1)
        async_to_sync(chat.typing)("c1", 3, True)

        room, event_type, payload, skip = transport.room_sends[-1]
        assert (room, event_type, skip) == ("conversation_3", "userTyping", "c1")
        assert payload["typing"] is True
        assert transport.sent_to("c1")[-1] == ("typingAck", {"conversationId": 3, "ok": True})

    def test_publish_message_hits_room_and_participants(self, chat, transport):
        self._online(chat, "c1", 1)
        self._online(chat, "c2", 2)
        message = NewMessage(
            id=11,
            text="hola",
            image_url=None,
            created_at="2025-01-01T00:00:00+00:00",
            sender_id=1,
            conversation_id=3,
            temp_id="tmp-1",
        )

        delivered = async_to_sync(chat.publish_message)(message, [1, 2, 9])

        assert delivered == 2
        assert transport.room_events("conversation_3") == ["newMessage"]
        room_payload = transport.room_sends[0][2]
        assert room_payload["tempId"] == "tmp-1"
        assert room_payload["senderId"] == 1
        assert set(transport.events()) == {"newMessageNotification"}

    def test_room_failures_are_logged(self, chat, transport, caplog):
        self._online(chat, "c1", 1)

        async def boom(*args, **kwargs):
            msg = "room gone"
            raise RuntimeError(msg)

        transport.send_to_room = boom
        with caplog.at_level(logging.ERROR):
            async_to_sync(chat.message_seen)("c1", 3, [1, 2])
        assert "failed to push messageSeen" in caplog.text


class TestFriendsGateway:
    def test_request_sent_only_to_receiver(self, friends, transport):
        connect(friends, "c1", 1)
        register(friends, "c1", 1)
        connect(friends, "c2", 2)
        register(friends, "c2", 2)

        delivered = async_to_sync(friends.notify_request_sent)(2, {"id": 7})

        assert delivered == 1
        assert transport.sent_to("c1") == []
        assert transport.sent_to("c2")[0][0] == "friendRequestSent"

    def test_block_tells_blocked_and_confirms_to_blocker(self, friends, transport, caplog):
        connect(friends, "c1", 1)
        register(friends, "c1", 1)
        connect(friends, "c2", 2)
        register(friends, "c2", 2)

        with caplog.at_level(logging.INFO, logger="senaconnect.realtime"):
            delivered = async_to_sync(friends.notify_user_blocked)(1, 2)

        assert delivered == 2
        assert transport.sent_to("c2") == [("userBlocked", {"blockerId": 1, "blockedId": 2})]
        assert transport.sent_to("c1") == [
            ("userBlockedConfirmation", {"blockerId": 1, "blockedId": 2})
        ]
        assert "user 1 blocked user 2" in caplog.text

    def test_offline_users_are_skipped(self, friends, transport):
        assert async_to_sync(friends.notify_request_deleted)([1, 2], {"id": 3}) == 0
        assert transport.sent == []
