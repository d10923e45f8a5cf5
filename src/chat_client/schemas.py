"""
Client Schema Definitions

Request dataclasses for every inbound server event, and the parsed form
of chat messages received from the server. Requests serialize to the
wire envelope {"type": ..., "data": {...}}.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar, Dict, List, Optional, TypeVar

T = TypeVar("T", bound="BaseResponse")


class BaseRequest:
    """
    Base class for request schemas.

    Provides common serialization methods for converting request objects
    to dictionary and JSON formats. Subclasses set `_wire_names` to map
    Python field names to the protocol's camelCase keys, and omit
    optional fields that are None.
    """

    _wire_names: ClassVar[Dict[str, str]] = {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary with 'type' key and a 'data' key.
        """
        data = {}
        if hasattr(self, "__dataclass_fields__") and fields(self):
            for key, value in asdict(self).items():
                if value is None:
                    continue
                data[self._wire_names.get(key, key)] = value
        return {"type": self._message_type, "data": data}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @property
    def _message_type(self) -> str:
        """
        Message type identifier for the request.

        Should be overridden by subclasses to provide the specific type.
        """
        raise NotImplementedError("Subclasses must define _message_type")


class BaseResponse:
    """
    Base class for response schemas.

    Provides common deserialization methods for creating response objects
    from dictionary and JSON formats.
    """

    @classmethod
    def from_dict(cls: type[T], data: Dict[str, Any]) -> T:
        response_data = data.get("data", data)
        return cls._from_data(response_data)

    @classmethod
    def from_json(cls: type[T], json_str: str) -> T:
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def _from_data(cls: type[T], data: Dict[str, Any]) -> T:
        return cls(**data)


@dataclass
class JoinRequest(BaseRequest):
    """
    Request to start a session.

    Attributes:
        username: Display name for the session
        room: Room to join (server default is "general")
    """

    username: str
    room: Optional[str] = None

    @property
    def _message_type(self) -> str:
        return "join"


@dataclass
class SendRequest(BaseRequest):
    """
    Request to post a message to a room.

    Attributes:
        text: Message body
        room: Target room, defaults to the session's room
    """

    text: str
    room: Optional[str] = None

    @property
    def _message_type(self) -> str:
        return "send"


@dataclass
class TypingRequest(BaseRequest):
    is_typing: bool
    room: Optional[str] = None

    _wire_names: ClassVar[Dict[str, str]] = {"is_typing": "isTyping"}

    @property
    def _message_type(self) -> str:
        return "typing"


@dataclass
class PrivateMessageRequest(BaseRequest):
    """
    Request to send a direct message.

    Attributes:
        to: Connection id of the recipient
        text: Message body
    """

    to: str
    text: str

    @property
    def _message_type(self) -> str:
        return "private_message"


@dataclass
class JoinRoomRequest(BaseRequest):
    room: str

    @property
    def _message_type(self) -> str:
        return "join_room"


@dataclass
class LeaveRoomRequest(BaseRequest):
    room: str

    @property
    def _message_type(self) -> str:
        return "leave_room"


@dataclass
class ReactionRequest(BaseRequest):
    message_id: int
    emoji: str

    _wire_names: ClassVar[Dict[str, str]] = {"message_id": "messageId"}

    @property
    def _message_type(self) -> str:
        return "reaction"


@dataclass
class ReadRequest(BaseRequest):
    message_id: int

    _wire_names: ClassVar[Dict[str, str]] = {"message_id": "messageId"}

    @property
    def _message_type(self) -> str:
        return "read"


@dataclass
class LoadMoreRequest(BaseRequest):
    """
    Request one page of history older than a timestamp.

    Attributes:
        before_timestamp: ISO 8601 timestamp, exclusive
        room: Room to page through, defaults to the session's room
    """

    before_timestamp: str
    room: Optional[str] = None

    _wire_names: ClassVar[Dict[str, str]] = {
        "before_timestamp": "beforeTimestamp"
    }

    @property
    def _message_type(self) -> str:
        return "load_more"


@dataclass
class SearchRequest(BaseRequest):
    query: str
    room: Optional[str] = None

    @property
    def _message_type(self) -> str:
        return "search"


@dataclass
class ChatMessage(BaseResponse):
    """
    A chat message as delivered by the server.

    Attributes:
        id: Server-assigned message id
        sender: Sender username
        sender_id: Sender connection id
        text: Message body
        timestamp: ISO 8601 timestamp
        room: Room name, None for private messages
        is_private: True for direct messages
        recipient: Recipient username (private messages)
        recipient_id: Recipient connection id (private messages)
        read_by: Connection ids that have read the message
        reactions: Emoji -> connection ids
    """

    id: int
    sender: str
    sender_id: str
    text: str
    timestamp: str
    room: Optional[str] = None
    is_private: bool = False
    recipient: Optional[str] = None
    recipient_id: Optional[str] = None
    read_by: List[str] = field(default_factory=list)
    reactions: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "ChatMessage":
        """Create from response data dictionary."""
        return cls(
            id=data["id"],
            sender=data["sender"],
            sender_id=data["senderId"],
            text=data["text"],
            timestamp=data["timestamp"],
            room=data.get("room"),
            is_private=data.get("isPrivate", False),
            recipient=data.get("recipient"),
            recipient_id=data.get("recipientId"),
            read_by=data.get("readBy", []),
            reactions=data.get("reactions", {}),
        )
