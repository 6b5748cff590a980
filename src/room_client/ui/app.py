"""
Room Application UI

Terminal user interface for one chat room, built using the Textual
framework. The app runs the RoomGate check first, then either shows the
rejection reason with a way back, or opens a RoomSession and renders its
message log and roster.
"""

import asyncio
import logging
from typing import Callable, Optional, Tuple

import httpx
from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import (
    Container,
    Horizontal,
    Vertical,
    ScrollableContainer,
)
from textual.css.query import NoMatches
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    ListItem,
    ListView,
    Static,
)

from ..config import ClientConfig
from ..gate import RoomGate, ValidationState
from ..identity import Identity
from ..schemas import RosterEntry
from ..session import LEFT_ROOM_REASON, RoomSession, SessionState
from ..views import Message

logger = logging.getLogger(__name__)

SYSTEM_SENDER = "System"
EMPTY_LOG_TEXT = "No messages yet. Start the conversation!"


def format_member(entry: RosterEntry, own_name: str) -> str:
    """Render one roster entry as a list label."""
    username = escape(entry.username or "Unknown User")
    marker = "[green]●[/]" if entry.online else "[dim]○[/]"
    if entry.username == own_name:
        return f"{marker} [bold cyan]{username}[/] (you)"
    return f"{marker} {username}"


def format_message(message: Message) -> str:
    """
    Render a chat message as markup.

    Sender and text come from the server and are escaped, so brackets
    in them show up literally.
    """
    if message.is_self:
        header = "[bold cyan]You[/]"
    elif message.sender == SYSTEM_SENDER:
        header = f"[bold magenta]{escape(message.sender)}[/]"
    else:
        header = f"[bold]{escape(message.sender)}[/]"
    return f"{header}\n{escape(message.text)}"


def message_classes(message: Message) -> str:
    """CSS classes for a message widget."""
    classes = []
    if message.is_self:
        classes.append("own-message")
    elif message.sender == SYSTEM_SENDER:
        classes.append("system-sender")
    return " ".join(classes)


class MessageDisplay(Static):
    """Widget for displaying a single chat message."""

    def __init__(self, message: Message) -> None:
        """Initialize message display."""
        super().__init__(classes=message_classes(message) or None)
        self.message = message

    def compose(self) -> ComposeResult:
        """Compose the message display."""
        yield Static(format_message(self.message), classes="message-content")


class SystemMessage(Static):
    """Widget for displaying system notices."""

    def __init__(self, message: str, message_type: str = "info") -> None:
        """Initialize system message display."""
        self.message = message
        self.message_type = message_type
        super().__init__()

    def compose(self) -> ComposeResult:
        """Compose the system message."""
        color = {
            "info": "blue",
            "warning": "yellow",
            "error": "red",
        }.get(self.message_type, "white")
        yield Static(
            f"[{color}]{escape(self.message)}[/]", classes="system-message"
        )


class GateScreen(Container):
    """Screen shown while the room is checked, or when it is rejected."""

    def compose(self) -> ComposeResult:
        """Compose the gate screen."""
        yield Static("", id="gate-title", classes="screen-title")
        yield Static("Checking...", id="gate-status", classes="status-message")
        yield Button(
            "Back", id="back-btn", variant="primary", classes="hidden"
        )


class ChatScreen(Container):
    """Screen for chatting in the room."""

    def compose(self) -> ComposeResult:
        """Compose the chat screen."""
        with Horizontal(id="chat-container"):
            with Vertical(id="sidebar"):
                yield Static("", id="members-header", classes="sidebar-header")
                yield ListView(id="member-list")
            with Vertical(id="chat-main"):
                with Horizontal(id="room-header"):
                    yield Static("Group Chat", id="room-title")
                    yield Button(
                        "Leave room", id="leave-room-btn", variant="error"
                    )
                with ScrollableContainer(id="messages-container"):
                    yield Static(
                        EMPTY_LOG_TEXT,
                        id="empty-placeholder",
                        classes="status-message",
                    )
                with Horizontal(id="message-input-row"):
                    yield Input(
                        placeholder="Type a message...",
                        id="message-input",
                    )
                    yield Button("Send", id="send-btn", variant="primary")


class RoomApp(App):
    """Chat application for a single room."""

    CSS = """
    Screen {
        layout: vertical;
    }

    .screen-title {
        text-align: center;
        padding: 1 0;
        text-style: bold;
    }

    .status-message {
        text-align: center;
        padding: 1;
    }

    GateScreen {
        align: center middle;
    }

    #back-btn {
        margin: 1 0 0 0;
    }

    ChatScreen {
        height: 100%;
    }

    #chat-container {
        height: 100%;
    }

    #sidebar {
        width: 1fr;
        border-right: solid $primary;
        padding: 0 1;
    }

    .sidebar-header {
        padding: 1 0;
        text-align: center;
    }

    #member-list {
        height: 1fr;
    }

    #chat-main {
        width: 3fr;
    }

    #room-header {
        height: 3;
        padding: 0 1;
        background: $surface;
    }

    #room-title {
        width: 1fr;
        padding: 1 0;
        text-style: bold;
    }

    #messages-container {
        height: 1fr;
        padding: 1;
    }

    #message-input-row {
        height: 3;
        padding: 0 1;
    }

    #message-input {
        width: 1fr;
    }

    #send-btn {
        margin: 0 0 0 1;
    }

    MessageDisplay {
        padding: 0 0 1 0;
    }

    .message-content {
        padding: 0 1;
    }

    .own-message .message-content {
        text-align: right;
    }

    .system-sender .message-content {
        background: $boost;
    }

    #empty-placeholder {
        text-style: dim;
    }

    .system-message {
        text-align: center;
        text-style: italic;
    }

    .hidden {
        display: none;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("escape", "leave_room", "Leave", show=True),
    ]

    def __init__(
        self,
        config: ClientConfig,
        identity: Identity,
        room_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
        websocket_factory: Optional[Callable] = None,
    ) -> None:
        """
        Initialize the room application.

        Args:
            config: Client configuration
            identity: The local user
            room_id: Room to open, as supplied by the user
            http_client: Optional client for the room directory
            websocket_factory: Optional factory for the messaging channel
        """
        super().__init__()
        self.config = config
        self.identity = identity
        self.room_id = room_id.strip()
        self.gate = RoomGate(
            config.server_url,
            identity,
            http_client=http_client,
            timeout=config.check_timeout,
        )
        self.session: Optional[RoomSession] = None
        self._websocket_factory = websocket_factory
        self._current_screen = "gate"
        self._open_task: Optional[asyncio.Task] = None

    def compose(self) -> ComposeResult:
        """Compose the main application layout."""
        yield Header()
        yield GateScreen(id="gate-screen")
        yield ChatScreen(id="chat-screen")
        yield Footer()

    def on_mount(self) -> None:
        """Handle application mount."""
        self.title = f"Room: {self.room_id}"
        self.query_one("#gate-title", Static).update(
            f"[bold blue]Room: {escape(self.room_id)}[/]"
        )
        self._show_screen("gate")
        self.gate.set_on_state_changed(self._on_validation_changed)
        self._open_task = asyncio.create_task(self._open_room())

    async def on_unmount(self) -> None:
        """Release the connection when the app goes away."""
        if self._open_task:
            self._open_task.cancel()
        if self.session:
            await self.session.close()

    def _show_screen(self, screen_name: str) -> None:
        """Show a specific screen and hide the other."""
        screens = {
            "gate": "gate-screen",
            "chat": "chat-screen",
        }

        for name, screen_id in screens.items():
            try:
                screen = self.query_one(f"#{screen_id}")
                screen.display = name == screen_name
            except NoMatches:
                pass

        self._current_screen = screen_name

    async def _open_room(self) -> None:
        """Validate the room, then join it if it exists."""
        try:
            state = await self.gate.check(self.room_id)
        except ValueError as e:
            self._show_gate_error(str(e))
            return
        if not state.is_valid:
            return

        self.session = RoomSession(
            self.gate.room_id,
            self.identity,
            state,
            self.config.ws_url,
            websocket_factory=self._websocket_factory,
            open_timeout=self.config.open_timeout,
        )
        self.session.set_on_message(self._on_message_received)
        self.session.set_on_roster(self._on_roster_replaced)
        self.session.set_on_state_changed(self._on_session_state_changed)

        try:
            await self.session.start()
        except ConnectionError as e:
            logger.error("Could not join room: %s", e)
            self._show_gate_error(str(e))
            return
        if self.session.state is not SessionState.JOINED:
            return

        self._show_screen("chat")
        self._update_members()
        try:
            self.query_one("#message-input", Input).focus()
        except NoMatches:
            pass

    def _on_validation_changed(self, state: ValidationState) -> None:
        """Callback for gate transitions."""
        if state.is_valid:
            self._set_gate_status("[green]Room Found. Connecting...[/]")
        elif state.is_invalid:
            self._show_gate_error(state.reason)
        else:
            self._set_gate_status("Checking...")

    def _set_gate_status(self, text: str) -> None:
        try:
            self.query_one("#gate-status", Static).update(text)
        except NoMatches:
            pass

    def _show_gate_error(self, reason: Optional[str]) -> None:
        """Show a rejection reason and offer the way back."""
        self._show_screen("gate")
        self._set_gate_status(f"[red]Error: {escape(str(reason))}[/]")
        try:
            self.query_one("#back-btn", Button).remove_class("hidden")
        except NoMatches:
            pass

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button press events."""
        button_id = event.button.id

        if button_id == "send-btn":
            await self._handle_send_message()
        elif button_id == "leave-room-btn":
            await self._handle_leave_room()
        elif button_id == "back-btn":
            self.exit()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle input submit events (Enter key)."""
        if event.input.id == "message-input":
            await self._handle_send_message()

    async def _handle_send_message(self) -> None:
        """Handle sending a message."""
        if not self.session:
            return

        message_input = self.query_one("#message-input", Input)
        if await self.session.send(message_input.value):
            message_input.value = ""

    async def _handle_leave_room(self) -> None:
        """Handle leaving the room."""
        if self.session:
            await self.session.close()
        self.exit()

    def _on_message_received(self, message: Message) -> None:
        """Callback when a message is appended to the log."""
        self.call_later(lambda m=message: self._add_chat_message(m))

    def _on_roster_replaced(
        self, entries: Tuple[RosterEntry, ...]
    ) -> None:
        """Callback when the roster snapshot is replaced."""
        self.call_later(self._update_members)

    def _on_session_state_changed(self, state: SessionState) -> None:
        """Callback for session transitions."""
        if state is SessionState.ENDED and self.session:
            reason = self.session.closed_reason or "Session ended"
            if reason != LEFT_ROOM_REASON:
                self.call_later(
                    lambda r=reason: self._add_system_message(
                        f"{r}. Leave the room to continue.", "error"
                    )
                )

    def _update_members(self) -> None:
        """Redraw the member list from the current roster."""
        if not self.session:
            return
        try:
            header = self.query_one("#members-header", Static)
            header.update(
                f"[bold]Room {escape(self.room_id)}[/]\n"
                f"Online Members ({len(self.session.roster)})"
            )

            member_list = self.query_one("#member-list", ListView)
            member_list.clear()
            for entry in self.session.roster:
                member_list.append(
                    ListItem(Label(format_member(entry, self.identity.name)))
                )
        except NoMatches:
            pass

    def _add_chat_message(self, message: Message) -> None:
        """Add a chat message to the display."""
        try:
            messages = self.query_one(
                "#messages-container", ScrollableContainer
            )
            self.query_one("#empty-placeholder", Static).display = False
            messages.mount(MessageDisplay(message))
            messages.scroll_end()
        except NoMatches:
            pass

    def _add_system_message(
        self, message: str, message_type: str = "info"
    ) -> None:
        """Add a system notice to the display."""
        try:
            messages = self.query_one(
                "#messages-container", ScrollableContainer
            )
            messages.mount(SystemMessage(message, message_type))
            messages.scroll_end()
        except NoMatches:
            pass

    def action_leave_room(self) -> None:
        """Handle leave action."""
        if self._current_screen == "chat":
            asyncio.create_task(self._handle_leave_room())
        else:
            self.exit()
