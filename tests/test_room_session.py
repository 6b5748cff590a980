"""
Tests for the Room Session

Tests for the live connection to a validated room:
- Join announcement and session state machine
- Sending (including skipped sends and the absence of local echo)
- Inbound chat and presence events
- Teardown, connection drops and malformed frames
"""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from room_client import (
    ChatReceived,
    Identity,
    Join,
    Leave,
    PreconditionMissing,
    PresenceReceived,
    RoomSession,
    RosterEntry,
    Send,
    SessionState,
    ValidationState,
)
from room_client.errors import RoomNotFound

WS_URL = "ws://localhost:3000"
ALICE = Identity(name="alice")

_SERVER_CLOSED = object()


class MockWebSocket:
    """Mock WebSocket for testing."""

    def __init__(self):
        self.sent_messages = []
        self.close_calls = 0
        self.closed = False
        self._incoming = asyncio.Queue()
        self.fail_with = None

    async def send(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent_messages.append(message)

    async def close(self):
        self.close_calls += 1
        self.closed = True
        self._incoming.put_nowait(_SERVER_CLOSED)

    def push(self, event_type, data):
        """Queue a server event."""
        self._incoming.put_nowait(json.dumps({"type": event_type, "data": data}))

    def push_raw(self, frame):
        """Queue a raw frame."""
        self._incoming.put_nowait(frame)

    def drop(self, error=None):
        """Simulate the server going away."""
        self._incoming.put_nowait(error or _SERVER_CLOSED)

    def sent(self):
        return [json.loads(m) for m in self.sent_messages]

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self._incoming.get()
        if frame is _SERVER_CLOSED:
            raise StopAsyncIteration
        if isinstance(frame, BaseException):
            raise frame
        return frame


def make_factory(websocket):
    """Create a websocket factory returning ``websocket``."""
    calls = []

    async def factory(url, **kwargs):
        calls.append((url, kwargs))
        return websocket

    factory.calls = calls
    return factory


async def wait_until(predicate, timeout=1.0):
    """Let the receive task run until ``predicate`` holds."""

    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


def make_session(websocket=None, validation=None, room_id="abc"):
    websocket = websocket or MockWebSocket()
    factory = make_factory(websocket)
    session = RoomSession(
        room_id,
        ALICE,
        validation or ValidationState.valid(),
        WS_URL,
        websocket_factory=factory,
    )
    return session, websocket, factory


class TestRoomSessionPreconditions:
    """Tests for when a session may not open a connection."""

    def test_missing_identity_raises(self):
        """Test that a session cannot be created without identity."""
        with pytest.raises(PreconditionMissing):
            RoomSession("abc", None, ValidationState.valid(), WS_URL)

    def test_initial_state(self):
        """Test that a new session is idle and empty."""
        session, _, _ = make_session(room_id=" abc ")
        assert session.room_id == "abc"
        assert session.state is SessionState.IDLE
        assert not session.is_connected
        assert len(session.messages) == 0
        assert len(session.roster) == 0
        assert session.closed_reason is None

    @pytest.mark.asyncio
    async def test_start_requires_valid_room(self):
        """Test that no connection is opened before the room is valid."""
        session, _, factory = make_session(
            validation=ValidationState.checking()
        )
        with pytest.raises(PreconditionMissing):
            await session.start()
        assert factory.calls == []
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_start_refused_for_invalid_room(self):
        """Test that an invalid room never gets a connection."""
        invalid = ValidationState.invalid(RoomNotFound("Room does not exist"))
        session, _, factory = make_session(validation=invalid)
        with pytest.raises(PreconditionMissing):
            await session.start()
        assert factory.calls == []

    @pytest.mark.asyncio
    async def test_start_twice_raises(self):
        """Test that a session cannot be started again."""
        session, _, factory = make_session()
        await session.start()
        with pytest.raises(RuntimeError):
            await session.start()
        assert len(factory.calls) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_ended_session_cannot_restart(self):
        """Test that there is no way back from ENDED."""
        session, _, factory = make_session()
        await session.start()
        await session.close()
        with pytest.raises(RuntimeError):
            await session.start()
        assert len(factory.calls) == 1


class TestRoomSessionJoin:
    """Tests for opening the connection and announcing membership."""

    @pytest.mark.asyncio
    async def test_join_announces_membership(self):
        """Test that start opens one connection and sends join_room."""
        session, ws, factory = make_session()
        states = []
        session.set_on_state_changed(states.append)

        await session.start()

        assert len(factory.calls) == 1
        assert factory.calls[0][0] == WS_URL
        assert ws.sent() == [
            {
                "type": "join_room",
                "data": {"roomId": "abc", "username": "alice"},
            }
        ]
        assert session.state is SessionState.JOINED
        assert session.is_connected
        assert states == [SessionState.JOINING, SessionState.JOINED]
        await session.close()

    @pytest.mark.asyncio
    async def test_open_timeout_is_passed_to_factory(self):
        """Test that the handshake timeout reaches the factory."""
        ws = MockWebSocket()
        factory = make_factory(ws)
        session = RoomSession(
            "abc",
            ALICE,
            ValidationState.valid(),
            WS_URL,
            websocket_factory=factory,
            open_timeout=3.5,
        )
        await session.start()
        assert factory.calls[0][1] == {"open_timeout": 3.5}
        await session.close()

    @pytest.mark.asyncio
    async def test_connection_failure_ends_session(self):
        """Test that a failed connect raises ConnectionError and ends."""

        async def failing_factory(url, **kwargs):
            raise OSError("Connection refused")

        session = RoomSession(
            "abc",
            ALICE,
            ValidationState.valid(),
            WS_URL,
            websocket_factory=failing_factory,
        )
        with pytest.raises(ConnectionError):
            await session.start()

        assert session.state is SessionState.ENDED
        assert session.websocket is None
        assert "Connection refused" in session.closed_reason

    @pytest.mark.asyncio
    async def test_context_manager_releases_connection(self):
        """Test that leaving the async with block closes the connection."""
        session, ws, _ = make_session()
        async with session:
            assert session.is_connected

        assert ws.closed
        assert session.state is SessionState.ENDED

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self):
        """Test that the connection is closed when the block raises."""
        session, ws, _ = make_session()
        with pytest.raises(KeyError):
            async with session:
                raise KeyError("boom")

        assert ws.closed
        assert session.websocket is None


class TestRoomSessionSend:
    """Tests for sending chat messages."""

    @pytest.mark.asyncio
    async def test_send_message(self):
        """Test that send writes a send_message event."""
        session, ws, _ = make_session()
        await session.start()

        assert await session.send("hello there") is True

        assert ws.sent()[-1] == {
            "type": "send_message",
            "data": {
                "roomId": "abc",
                "message": "hello there",
                "username": "alice",
            },
        }
        await session.close()

    @pytest.mark.asyncio
    async def test_send_has_no_local_echo(self):
        """Test that sending does not touch the message log."""
        session, _, _ = make_session()
        await session.start()

        await session.send("hello")

        assert len(session.messages) == 0
        await session.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t "])
    async def test_blank_message_is_skipped(self, text):
        """Test that blank input never sends and never changes the log."""
        session, ws, _ = make_session()
        await session.start()
        sent_before = len(ws.sent_messages)

        assert await session.send(text) is False

        assert len(ws.sent_messages) == sent_before
        assert len(session.messages) == 0
        await session.close()

    @pytest.mark.asyncio
    async def test_send_before_join_is_skipped(self):
        """Test that sending without a connection is a silent no-op."""
        session, ws, _ = make_session()
        assert await session.send("hello") is False
        assert ws.sent_messages == []

    @pytest.mark.asyncio
    async def test_send_after_close_is_skipped(self):
        """Test that sending after teardown is a silent no-op."""
        session, ws, _ = make_session()
        await session.start()
        await session.close()
        sent_before = len(ws.sent_messages)

        assert await session.send("hello") is False
        assert len(ws.sent_messages) == sent_before

    @pytest.mark.asyncio
    async def test_send_on_closed_connection_returns_false(self):
        """Test that a closed connection during send is not raised."""
        session, ws, _ = make_session()
        await session.start()
        ws.fail_with = ConnectionClosedError(None, None)

        assert await session.send("hello") is False
        await session.close()


class TestRoomSessionReceive:
    """Tests for inbound chat and presence events."""

    @pytest.mark.asyncio
    async def test_join_scenario(self):
        """Test the full join, roster and message flow for one user."""
        session, ws, _ = make_session(room_id="abc ")
        await session.start()

        ws.push("room_users", [{"id": 1, "username": "alice", "online": True}])
        await wait_until(lambda: len(session.roster) == 1)
        assert session.roster.entries == (
            RosterEntry(id=1, username="alice", online=True),
        )

        ws.push("receive_message", {"username": "alice", "message": "hi"})
        await wait_until(lambda: len(session.messages) == 1)
        message = session.messages.messages[0]
        assert message.sender == "alice"
        assert message.text == "hi"
        assert message.is_self is True

        assert ws.sent()[0]["data"] == {"roomId": "abc", "username": "alice"}
        await session.close()

    @pytest.mark.asyncio
    async def test_each_chat_event_appends_one_message(self):
        """Test that every chat event appends exactly one message."""
        session, ws, _ = make_session()
        received = []
        session.set_on_message(received.append)
        await session.start()

        for i in range(3):
            ws.push("receive_message", {"username": "bob", "message": f"m{i}"})
        await wait_until(lambda: len(session.messages) == 3)

        assert [m.text for m in session.messages] == ["m0", "m1", "m2"]
        assert len({m.id for m in session.messages}) == 3
        assert received == session.messages.messages
        await session.close()

    def test_self_is_string_equality(self):
        """Test that is_self compares the sender name only."""
        session, _, _ = make_session()

        session.handle_event(ChatReceived(username="bob", message="yo"))
        session.handle_event(ChatReceived(username="alice", message="me"))
        session.handle_event(ChatReceived(username="Alice", message="not me"))

        assert [m.is_self for m in session.messages] == [False, True, False]

    def test_roster_is_replaced_not_merged(self):
        """Test that a roster of N then M leaves exactly M entries."""
        session, _, _ = make_session()
        first = tuple(
            RosterEntry(id=i, username=f"user{i}", online=True)
            for i in range(4)
        )
        second = (
            RosterEntry(id=9, username="zoe", online=False),
            RosterEntry(id=1, username="user1", online=True),
        )

        session.handle_event(PresenceReceived(users=first))
        assert len(session.roster) == 4

        session.handle_event(PresenceReceived(users=second))
        assert session.roster.entries == second

    def test_empty_roster_clears_members(self):
        """Test that an empty snapshot empties the roster."""
        session, _, _ = make_session()
        session.handle_event(
            PresenceReceived(
                users=(RosterEntry(id=1, username="alice", online=True),)
            )
        )
        session.handle_event(PresenceReceived(users=()))
        assert len(session.roster) == 0

    def test_roster_callback(self):
        """Test that roster observers receive the new snapshot."""
        session, _, _ = make_session()
        snapshots = []
        session.set_on_roster(snapshots.append)
        users = (RosterEntry(id=1, username="alice", online=True),)

        session.handle_event(PresenceReceived(users=users))

        assert snapshots == [users]

    def test_failing_callback_does_not_break_ingestion(self):
        """Test that a UI callback error does not lose the message."""
        session, _, _ = make_session()

        def broken(_message):
            raise RuntimeError("render failed")

        session.set_on_message(broken)
        session.handle_event(ChatReceived(username="bob", message="hi"))

        assert len(session.messages) == 1

    @pytest.mark.asyncio
    async def test_malformed_frames_are_dropped(self):
        """Test that bad frames are ignored and the session stays up."""
        session, ws, _ = make_session()
        await session.start()

        ws.push_raw("not json at all")
        ws.push_raw(json.dumps(["not", "an", "envelope"]))
        ws.push("something_else", {"x": 1})
        ws.push("receive_message", {"username": "bob"})
        ws.push("room_users", {"users": "nope"})
        ws.push("receive_message", {"username": "bob", "message": "ok"})
        await wait_until(lambda: len(session.messages) == 1)

        assert session.messages.messages[0].text == "ok"
        assert len(session.roster) == 0
        assert session.state is SessionState.JOINED
        await session.close()

    @pytest.mark.asyncio
    async def test_events_after_end_are_ignored(self):
        """Test that an ended session is frozen."""
        session, _, _ = make_session()
        await session.start()
        await session.close()

        session.handle_event(ChatReceived(username="bob", message="late"))

        assert len(session.messages) == 0


class TestRoomSessionTeardown:
    """Tests for leaving, teardown and connection drops."""

    @pytest.mark.asyncio
    async def test_close_twice_is_safe(self):
        """Test that teardown twice raises nothing and leaves no socket."""
        session, ws, _ = make_session()
        await session.start()

        await session.close()
        await session.close()

        assert session.websocket is None
        assert ws.close_calls == 1
        assert session.state is SessionState.ENDED
        assert not session.is_connected

    @pytest.mark.asyncio
    async def test_close_without_connection_is_noop(self):
        """Test that teardown before start does not fail."""
        session, _, factory = make_session()
        await session.close()
        await session.close()
        assert factory.calls == []
        assert session.websocket is None

    @pytest.mark.asyncio
    async def test_close_during_handshake_releases_connection(self):
        """Test that a socket opened after teardown is closed at once."""
        ws = MockWebSocket()
        opened = asyncio.Event()
        release = asyncio.Event()

        async def slow_factory(url, **kwargs):
            opened.set()
            await release.wait()
            return ws

        session = RoomSession(
            "abc",
            ALICE,
            ValidationState.valid(),
            WS_URL,
            websocket_factory=slow_factory,
        )
        start_task = asyncio.create_task(session.start())
        await opened.wait()
        await session.close()
        release.set()
        await start_task

        assert ws.closed
        assert ws.sent_messages == []
        assert session.websocket is None
        assert session.state is SessionState.ENDED

    @pytest.mark.asyncio
    async def test_close_during_join_send_stays_ended(self):
        """Test that close() while the join is being written wins."""
        writing = asyncio.Event()
        release = asyncio.Event()

        class SlowSendWebSocket(MockWebSocket):
            async def send(self, message):
                writing.set()
                await release.wait()
                await super().send(message)

        session, ws, _ = make_session(websocket=SlowSendWebSocket())
        states = []
        session.set_on_state_changed(states.append)

        start_task = asyncio.create_task(session.start())
        await writing.wait()
        await session.close()
        release.set()
        await start_task

        assert states == [SessionState.JOINING, SessionState.ENDED]
        assert session.state is SessionState.ENDED
        assert session.closed_reason == "Left room"
        assert session.websocket is None
        assert session._receive_task is None
        assert ws.closed

    @pytest.mark.asyncio
    async def test_join_send_failing_after_close_is_not_raised(self):
        """Test that a join write broken by close() ends quietly."""
        writing = asyncio.Event()
        release = asyncio.Event()

        class BrokenSendWebSocket(MockWebSocket):
            async def send(self, message):
                writing.set()
                await release.wait()
                raise ConnectionClosedError(None, None)

        session, _, _ = make_session(websocket=BrokenSendWebSocket())
        start_task = asyncio.create_task(session.start())
        await writing.wait()
        await session.close()
        release.set()
        await start_task

        assert session.state is SessionState.ENDED
        assert session.closed_reason == "Left room"

    @pytest.mark.asyncio
    async def test_leave_command(self):
        """Test that Join, Send and Leave commands drive the session."""
        session, ws, _ = make_session()

        await session.dispatch(Join())
        assert await session.dispatch(Send(text="hey")) is True
        assert await session.dispatch(Send(text="  ")) is False
        await session.dispatch(Leave())

        assert [m["type"] for m in ws.sent()] == ["join_room", "send_message"]
        assert session.state is SessionState.ENDED
        assert session.closed_reason == "Left room"

    @pytest.mark.asyncio
    async def test_unknown_command_raises(self):
        """Test that dispatch rejects unknown commands."""
        session, _, _ = make_session()
        with pytest.raises(TypeError):
            await session.dispatch("join")

    @pytest.mark.asyncio
    async def test_server_close_ends_session(self):
        """Test that the server closing the socket ends the session."""
        session, ws, _ = make_session()
        states = []
        session.set_on_state_changed(states.append)
        await session.start()

        ws.drop()
        await wait_until(lambda: session.state is SessionState.ENDED)

        assert session.closed_reason == "Connection closed by server"
        assert session.websocket is None
        assert states[-1] is SessionState.ENDED
        await session.close()

    @pytest.mark.asyncio
    async def test_connection_closed_error_ends_session(self):
        """Test that an abnormal close does not propagate."""
        session, ws, _ = make_session()
        await session.start()

        ws.drop(ConnectionClosedError(None, None))
        await wait_until(lambda: session.state is SessionState.ENDED)

        assert session.closed_reason == "Connection closed by server"

    def test_connection_closed_is_imported_directly(self):
        """Test that closed-connection handling needs no lazy attribute."""
        from room_client import session as session_module

        assert session_module.ConnectionClosed is ConnectionClosed

    @pytest.mark.asyncio
    async def test_transport_error_freezes_session(self):
        """Test that an unexpected transport error ends the session."""
        session, ws, _ = make_session()
        await session.start()
        ws.push("receive_message", {"username": "bob", "message": "before"})

        ws.drop(RuntimeError("socket exploded"))
        await wait_until(lambda: session.state is SessionState.ENDED)

        assert "socket exploded" in session.closed_reason
        assert [m.text for m in session.messages] == ["before"]
        await session.close()
