"""
Chat Application UI

Terminal user interface for the chat server, built with the Textual
framework. A connection form leads to a chat screen with the room's
message log, an input box and a sidebar listing who is online and who
is typing.

Commands typed into the message box:
    /join <room>          switch to another room
    /leave <room>         leave a room
    /pm <user> <text>     private message (username or connection id)
    /search <query>       search the current room
    /react <id> <emoji>   toggle a reaction on a message
    /read <id>            mark a message as read
    /more                 load older messages
    /quit                 exit
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import (
    Container,
    Horizontal,
    ScrollableContainer,
    Vertical,
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
from textual.worker import Worker

from ..schemas import ChatMessage
from ..service import ClientService

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "ws://localhost:8080"
DEFAULT_ROOM = "general"


class MessageDisplay(Static):
    """Widget for displaying a single chat message."""

    def __init__(
        self, chat_message: ChatMessage, is_own_message: bool = False
    ) -> None:
        self.chat_message = chat_message
        self.is_own_message = is_own_message
        super().__init__(self.message_markup(), classes="message-content")

    def message_markup(self) -> str:
        message = self.chat_message
        time_part = (
            message.timestamp.split("T")[1][:8]
            if "T" in message.timestamp
            else ""
        )
        sender = "You" if self.is_own_message else escape(message.sender)
        if message.is_private:
            sender = (
                f"[magenta]private[/] {sender} -> "
                f"{escape(message.recipient or '?')}"
            )
        lines = [
            f"[dim]#{message.id}[/] [bold cyan]{sender}[/] "
            f"[dim]{time_part}[/]",
            escape(message.text),
        ]

        details = [
            f"{emoji} {len(reactors)}"
            for emoji, reactors in message.reactions.items()
        ]
        if len(message.read_by) > 1:
            details.append(f"read by {len(message.read_by)}")
        if details:
            lines.append(f"[dim]{'  '.join(details)}[/]")
        return "\n".join(lines)

    def refresh_message(self, chat_message: ChatMessage) -> None:
        """Re-render after a reaction or read receipt changed."""
        self.chat_message = chat_message
        self.update(self.message_markup())


class SystemMessage(Static):
    """Widget for displaying system messages and notifications."""

    def __init__(self, message: str, message_type: str = "info") -> None:
        self.message = message
        self.message_type = message_type
        color = {
            "info": "blue",
            "warning": "yellow",
            "error": "red",
            "success": "green",
        }.get(message_type, "white")
        super().__init__(
            f"[{color}]* {escape(message)}[/]", classes="system-message"
        )


class ConnectionScreen(Container):
    """Screen for connecting to a chat server."""

    def __init__(
        self,
        username: str = "",
        server_url: str = DEFAULT_SERVER_URL,
        room: str = DEFAULT_ROOM,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._defaults = (username, server_url, room)

    def compose(self) -> ComposeResult:
        username, server_url, room = self._defaults
        yield Static("[bold blue]Chat[/]", id="title", classes="screen-title")
        yield Static("Enter your details to connect:", classes="subtitle")
        with Vertical(id="connection-form"):
            yield Label("Username:")
            yield Input(
                value=username,
                placeholder="Enter your username...",
                id="username-input",
            )
            yield Label("Server:")
            yield Input(
                value=server_url,
                placeholder="host:port (e.g., localhost:8080)",
                id="server-input",
            )
            yield Label("Room:")
            yield Input(value=room, placeholder=DEFAULT_ROOM, id="room-input")
            yield Button("Connect", id="connect-btn", variant="primary")
        yield Static("", id="connection-status", classes="status-message")


class ChatScreen(Container):
    """Screen for chatting in a room."""

    def compose(self) -> ComposeResult:
        with Horizontal(id="chat-container"):
            with Vertical(id="chat-main"):
                yield Static("", id="room-header", classes="room-header")
                yield ScrollableContainer(id="messages-container")
                with Horizontal(id="message-input-row"):
                    yield Input(
                        placeholder="Type a message or /command...",
                        id="message-input",
                    )
                    yield Button("Send", id="send-btn", variant="primary")
            with Vertical(id="sidebar"):
                yield Static("[bold]Online[/]", classes="sidebar-header")
                yield ListView(id="member-list")
                yield Static("", id="typing-status")
                yield Button(
                    "Disconnect", id="disconnect-btn", variant="warning"
                )


class ChatApp(App):
    """Main chat application."""

    TITLE = "Chat"

    CSS = """
    .screen-title {
        text-align: center;
        padding: 1 0;
        text-style: bold;
    }

    .subtitle {
        text-align: center;
        padding: 0 0 1 0;
    }

    ConnectionScreen {
        align: center middle;
    }

    #connection-form {
        padding: 1 2;
        width: 60;
        height: auto;
    }

    #connection-form Button {
        margin: 1 0 0 0;
        width: 100%;
    }

    .status-message {
        text-align: center;
        padding: 1;
    }

    ChatScreen {
        height: 100%;
    }

    #chat-container {
        height: 100%;
    }

    #chat-main {
        width: 3fr;
    }

    #sidebar {
        width: 1fr;
        border-left: solid $primary;
        padding: 0 1;
    }

    .sidebar-header {
        padding: 1 0;
        text-align: center;
    }

    #member-list {
        height: 1fr;
    }

    #typing-status {
        height: auto;
        padding: 1 0;
        text-style: italic;
    }

    .room-header {
        padding: 1;
        background: $surface;
        text-align: center;
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

    .own-message {
        text-align: right;
    }

    SystemMessage {
        padding: 0 0 1 0;
        text-align: center;
        text-style: italic;
    }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", show=True),
        Binding("escape", "go_back", "Disconnect", show=True),
    ]

    def __init__(
        self,
        server_url: str = DEFAULT_SERVER_URL,
        username: Optional[str] = None,
        room: str = DEFAULT_ROOM,
        service_factory: Callable[[str], ClientService] = ClientService,
    ) -> None:
        """
        Initialize the chat application.

        Args:
            server_url: Pre-filled server address
            username: Pre-filled username
            room: Pre-filled room to join
            service_factory: Builds the ClientService for a server URL
        """
        super().__init__()
        self.server_url = server_url
        self.username = username
        self.room = room
        self.client: Optional[ClientService] = None
        self.members: List[Dict[str, Any]] = []
        self._service_factory = service_factory
        self._typing = False
        self._receiver: Optional[Worker] = None
        self._message_widgets: Dict[int, MessageDisplay] = {}
        self._current_screen = "connection"

    def compose(self) -> ComposeResult:
        yield Header()
        yield ConnectionScreen(
            self.username or "",
            self.server_url,
            self.room,
            id="connection-screen",
        )
        yield ChatScreen(id="chat-screen")
        yield Footer()

    def on_mount(self) -> None:
        self._show_screen("connection")

    def _show_screen(self, screen_name: str) -> None:
        """Show a specific screen and hide the other."""
        screens = {
            "connection": "connection-screen",
            "chat": "chat-screen",
        }

        for name, screen_id in screens.items():
            try:
                screen = self.query_one(f"#{screen_id}")
                screen.display = name == screen_name
            except NoMatches:
                pass

        self._current_screen = screen_name

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id

        if button_id == "connect-btn":
            await self._handle_connect()
        elif button_id == "send-btn":
            await self._handle_submit()
        elif button_id == "disconnect-btn":
            await self._handle_disconnect()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle input submit events (Enter key)."""
        input_id = event.input.id

        if input_id == "message-input":
            await self._handle_submit()
        elif input_id in ("username-input", "server-input", "room-input"):
            await self._handle_connect()

    async def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "message-input":
            await self._update_typing(event.value)

    # ===== Connection lifecycle =====

    async def _handle_connect(self) -> None:
        """Connect to the server and join the requested room."""
        status = self.query_one("#connection-status", Static)
        username = self.query_one("#username-input", Input).value.strip()
        address = self.query_one("#server-input", Input).value.strip()
        room = self.query_one("#room-input", Input).value.strip()

        if not username:
            status.update("[red]Please enter a username[/]")
            return
        if not address:
            status.update("[red]Please enter a server address[/]")
            return

        status.update("[yellow]Connecting...[/]")
        ws_url = address if "://" in address else f"ws://{address}"

        client = self._service_factory(ws_url)
        self._register_handlers(client)
        try:
            await client.connect()
            await client.join(username, room or None)
        except Exception as e:
            logger.error(f"Connection failed: {e}")
            status.update(f"[red]Connection failed: {escape(str(e))}[/]")
            return

        self.client = client
        self.username = username
        self.server_url = ws_url
        status.update("")
        self._show_screen("chat")
        self.query_one("#message-input", Input).focus()
        self._receiver = self.run_worker(
            self._receive_events(),
            name="receiver",
            exclusive=True,
            exit_on_error=False,
        )

    async def _receive_events(self) -> None:
        try:
            await self.client.receive_events()
            reason = "connection closed by server"
        except Exception as e:
            logger.error(f"Receiver error: {e}")
            reason = str(e)
        await self._handle_connection_lost(reason)

    async def _handle_disconnect(self) -> None:
        """Leave the chat and return to the connection screen."""
        if self._receiver:
            self._receiver.cancel()
            self._receiver = None

        client = self.client
        self.client = None
        if client:
            await client.disconnect()

        await self._reset_chat()
        self._show_screen("connection")

    async def _handle_connection_lost(self, reason: str) -> None:
        if self.client is None:
            return
        self.client = None
        self._receiver = None
        await self._reset_chat()
        self._show_screen("connection")
        status = self.query_one("#connection-status", Static)
        status.update(f"[red]Connection lost: {escape(reason)}[/]")

    async def _reset_chat(self) -> None:
        self.members = []
        self._typing = False
        self._message_widgets.clear()
        messages = self.query_one("#messages-container", ScrollableContainer)
        await messages.remove_children()
        await self._update_sidebar()
        self.query_one("#typing-status", Static).update("")

    async def action_go_back(self) -> None:
        if self._current_screen == "chat":
            await self._handle_disconnect()

    # ===== Outgoing =====

    async def _update_typing(self, value: str) -> None:
        """Send typing=true on every keystroke, false once the box is empty."""
        if not self.client or not self.client.is_connected:
            return
        typing = bool(value.strip()) and not value.startswith("/")
        if typing:
            await self.client.set_typing(True)
            self._typing = True
        elif self._typing:
            await self.client.set_typing(False)
            self._typing = False

    async def _handle_submit(self) -> None:
        if not self.client or not self.client.is_connected:
            return

        message_input = self.query_one("#message-input", Input)
        line = message_input.value.strip()
        if not line:
            return

        try:
            if self._typing:
                self._typing = False
                await self.client.set_typing(False)
            message_input.value = ""
            if line.startswith("/"):
                if not await self.execute_command(line):
                    await self.action_quit()
            else:
                await self.client.send_message(line)
        except ConnectionError as e:
            logger.error(f"Failed to send: {e}")
            self._add_system_message(f"Failed to send: {e}", "error")

    async def execute_command(self, line: str) -> bool:
        """
        Execute one slash command.

        Returns:
            False when the user asked to quit, True otherwise
        """
        parts = line.split(" ", 2)
        command = parts[0]
        if command == "/quit":
            return False
        if command == "/join" and len(parts) >= 2:
            await self.client.join_room(parts[1])
        elif command == "/leave" and len(parts) >= 2:
            await self.client.leave_room(parts[1])
        elif command == "/pm" and len(parts) == 3:
            await self.client.send_private_message(
                self._resolve_recipient(parts[1]), parts[2]
            )
        elif command == "/search" and len(parts) >= 2:
            await self.client.search(line.split(" ", 1)[1])
        elif command == "/react" and len(parts) == 3 and parts[1].isdigit():
            await self.client.react(int(parts[1]), parts[2])
        elif command == "/read" and len(parts) == 2 and parts[1].isdigit():
            await self.client.mark_read(int(parts[1]))
        elif command == "/more":
            oldest = self._oldest_timestamp()
            if oldest is None:
                self._add_system_message("No messages to page from")
            else:
                await self.client.load_more(oldest)
        else:
            self._add_system_message(f"Unknown command: {line}", "warning")
        return True

    def _resolve_recipient(self, target: str) -> str:
        """Map a username from the current roster to its connection id."""
        for member in self.members:
            if member.get("username") == target:
                return member["id"]
        return target

    def _oldest_timestamp(self) -> Optional[str]:
        for widget in self.query(MessageDisplay):
            if widget.has_class("room-message"):
                return widget.chat_message.timestamp
        return None

    # ===== Incoming =====

    def _register_handlers(self, client: ClientService) -> None:
        client.on("receive_message", self._on_chat_message)
        client.on("private_message", self._on_chat_message)
        client.on("room_messages", self._on_room_messages)
        client.on("more_messages", self._on_more_messages)
        client.on("search_results", self._on_search_results)
        client.on("message_updated", self._on_message_updated)
        client.on("room_users", self._on_room_users)
        client.on("typing_users", self._on_typing_users)
        client.on("room_notification", self._on_room_notification)
        client.on("browser_notification", self._on_browser_notification)
        client.on("sound_notification", lambda data: self.bell())
        client.on("error", self._on_error)

    def _on_chat_message(self, data: Dict[str, Any]) -> None:
        # call_later keeps widget updates on the app's message queue
        self.call_later(lambda m=data: self._add_chat_message(m))

    def _on_room_messages(self, data: List[Dict[str, Any]]) -> None:
        self.call_later(lambda m=data: self._show_history(m))

    def _on_more_messages(self, data: Dict[str, Any]) -> None:
        self.call_later(
            lambda d=data: self._prepend_history(d["messages"], d["hasMore"])
        )

    def _on_search_results(self, data: List[Dict[str, Any]]) -> None:
        self.call_later(lambda m=data: self._show_search_results(m))

    def _on_message_updated(self, data: Dict[str, Any]) -> None:
        widget = self._message_widgets.get(data.get("id"))
        if widget is not None:
            message = ChatMessage.from_dict(data)
            self.call_later(lambda: widget.refresh_message(message))

    def _on_room_users(self, data: List[Dict[str, Any]]) -> None:
        self.members = list(data)
        self.call_later(self._update_sidebar)

    def _on_typing_users(self, data: List[str]) -> None:
        others = [name for name in data if name != self.username]
        text = f"{', '.join(others)} typing..." if others else ""
        self.call_later(
            lambda: self.query_one("#typing-status", Static).update(
                escape(text)
            )
        )

    def _on_room_notification(self, data: Dict[str, Any]) -> None:
        self.call_later(
            lambda: self._add_system_message(data.get("message", ""))
        )

    def _on_browser_notification(self, data: Dict[str, Any]) -> None:
        self.notify(data.get("body", ""), title=data.get("title", ""))

    def _on_error(self, data: Dict[str, Any]) -> None:
        self.call_later(
            lambda: self._add_system_message(
                data.get("message", "Server error"), "error"
            )
        )

    # ===== Rendering =====

    def _message_widget(self, data: Dict[str, Any]) -> MessageDisplay:
        message = ChatMessage.from_dict(data)
        widget = MessageDisplay(message, message.sender == self.username)
        if widget.is_own_message:
            widget.add_class("own-message")
        if not message.is_private:
            widget.add_class("room-message")
        self._message_widgets[message.id] = widget
        return widget

    def _add_chat_message(self, data: Dict[str, Any]) -> None:
        try:
            messages = self.query_one(
                "#messages-container", ScrollableContainer
            )
        except NoMatches:
            return
        messages.mount(self._message_widget(data))
        messages.scroll_end()

    async def _show_history(self, history: List[Dict[str, Any]]) -> None:
        """Replace the log with a room's recent messages."""
        messages = self.query_one("#messages-container", ScrollableContainer)
        await messages.remove_children()
        self._message_widgets.clear()
        if history:
            await messages.mount_all(
                [self._message_widget(item) for item in history]
            )
        messages.scroll_end()
        await self._update_sidebar()

    async def _prepend_history(
        self, page: List[Dict[str, Any]], has_more: bool
    ) -> None:
        messages = self.query_one("#messages-container", ScrollableContainer)
        if not page:
            self._add_system_message("No older messages")
            return
        await messages.mount_all(
            [self._message_widget(item) for item in page], before=0
        )
        if not has_more:
            self._add_system_message("Start of history")

    def _show_search_results(self, results: List[Dict[str, Any]]) -> None:
        messages = self.query_one("#messages-container", ScrollableContainer)
        messages.mount(
            SystemMessage(f"Search found {len(results)} message(s)", "success")
        )
        for item in results:
            message = ChatMessage.from_dict(item)
            widget = MessageDisplay(message, message.sender == self.username)
            widget.add_class("search-result")
            messages.mount(widget)
        messages.scroll_end()

    async def _update_sidebar(self) -> None:
        """Update the room header and the online list."""
        try:
            header = self.query_one("#room-header", Static)
            member_list = self.query_one("#member-list", ListView)
        except NoMatches:
            return

        room = self.client.room if self.client else None
        header.update(
            f"[bold]Room: {escape(room or '-')}[/] "
            f"| Online: {len(self.members)}"
        )

        await member_list.clear()
        items = []
        for member in self.members:
            name = escape(member.get("username", "?"))
            if member.get("username") == self.username:
                name = f"[bold cyan]{name}[/] (you)"
            items.append(ListItem(Label(name)))
        if items:
            await member_list.extend(items)

    def _add_system_message(
        self, message: str, message_type: str = "info"
    ) -> None:
        try:
            messages = self.query_one(
                "#messages-container", ScrollableContainer
            )
            messages.mount(SystemMessage(message, message_type))
            messages.scroll_end()
        except NoMatches:
            pass
