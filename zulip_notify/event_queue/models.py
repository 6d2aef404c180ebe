"""Event queue data models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, FrozenSet, Iterable, List, Tuple, Union

from zulip_notify import settings
from zulip_notify.zulip_client import ApiError, TransportError


@dataclass(frozen=True)
class Site:
    """One Zulip account to watch."""

    name: str
    user: str
    token: str = field(repr=False)

    def api_url(self, endpoint: str) -> str:
        return settings.SITE_URL_TEMPLATE.format(name=self.name) + endpoint


@dataclass
class EventQueue:
    """A registered server-side queue plus the client-side delivery cursor."""

    site: Site
    queue_id: str
    last_event_id: int

    def replace_with(self, other: "EventQueue") -> None:
        """Take over a freshly registered queue's identity and cursor."""
        self.queue_id = other.queue_id
        self.last_event_id = other.last_event_id

    def advance(self, events: List["Event"]) -> None:
        """Move the cursor to the highest event id seen, never backwards."""
        if events:
            self.last_event_id = max(self.last_event_id, max(event.id for event in events))


# --- API results ---

@dataclass
class ApiSuccess:
    data: Dict[str, Any]

    def unwrap(self) -> Dict[str, Any]:
        return self.data


@dataclass
class ApiFailure:
    payload: Dict[str, Any]

    @property
    def code(self):
        code = self.payload.get("code")
        return code if isinstance(code, str) else None

    def unwrap(self):
        raise ApiError(self.payload)


class ApiResult:
    """Decodes the ``result``-tagged envelope every API response carries."""

    @staticmethod
    def from_response(body: Dict[str, Any]) -> Union[ApiSuccess, ApiFailure]:
        result = body.get("result")
        rest = {k: v for k, v in body.items() if k != "result"}
        if result == "success":
            return ApiSuccess(rest)
        if result == "error":
            return ApiFailure(rest)
        raise TransportError(f"unknown result tag: {result!r}")


# --- Messages ---

class MessageFlag(Enum):
    READ = "read"
    MENTIONED = "mentioned"
    HAS_ALERT_WORD = "has_alert_word"

    @classmethod
    def parse_all(cls, names: Iterable[str]) -> FrozenSet["MessageFlag"]:
        """Known flags only; the server sends others we don't care about."""
        known = {flag.value: flag for flag in cls}
        return frozenset(known[name] for name in names if name in known)


class MessageKind(Enum):
    STREAM = "stream"
    PRIVATE = "private"


@dataclass(frozen=True)
class User:
    full_name: str

    def __str__(self):
        return f"@{self.full_name}"


@dataclass(frozen=True)
class StreamRecipient:
    name: str

    def __str__(self):
        return f"#{self.name}"


@dataclass(frozen=True)
class UserRecipients:
    users: Tuple[User, ...]

    def __str__(self):
        if not self.users:
            return "<no users>"
        return ",".join(str(user) for user in self.users)


Recipients = Union[StreamRecipient, UserRecipients]


@dataclass(frozen=True)
class Message:
    content: str
    recipients: Recipients
    sender_full_name: str
    timestamp: datetime
    kind: MessageKind

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        display_recipient = data["display_recipient"]
        if isinstance(display_recipient, str):
            recipients = StreamRecipient(display_recipient)
        elif isinstance(display_recipient, list):
            recipients = UserRecipients(tuple(User(user["full_name"]) for user in display_recipient))
        else:
            raise TypeError(f"unexpected display_recipient: {display_recipient!r}")

        return cls(
            content=data["content"],
            recipients=recipients,
            sender_full_name=data["sender_full_name"],
            timestamp=datetime.fromtimestamp(data["timestamp"], tz=timezone.utc),
            kind=MessageKind(data["type"]),
        )

    def header(self) -> str:
        local_time = self.timestamp.astimezone().strftime("%H:%M:%S")
        return f"[{local_time}] @{self.sender_full_name} -> {self.recipients}"

    def __str__(self):
        return f"{self.header()}: {self.content}"


# --- Events ---

@dataclass(frozen=True)
class Heartbeat:
    pass


@dataclass(frozen=True)
class MessageEvent:
    flags: FrozenSet[MessageFlag]
    message: Message


@dataclass(frozen=True)
class OtherEvent:
    type_name: str


EventType = Union[Heartbeat, MessageEvent, OtherEvent]


@dataclass(frozen=True)
class Event:
    id: int
    payload: EventType

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """
        Decode one entry of a poll response's ``events`` list.

        Unknown ``type`` values become OtherEvent; a missing or mistyped
        field of a known type raises TransportError.
        """
        try:
            event_id = int(data["id"])
            event_type = data.get("type")
            if event_type == "heartbeat":
                payload = Heartbeat()
            elif event_type == "message":
                payload = MessageEvent(
                    flags=MessageFlag.parse_all(data.get("flags", [])),
                    message=Message.from_dict(data["message"]),
                )
            else:
                payload = OtherEvent(str(event_type))
        except (AttributeError, KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            raise TransportError(f"malformed event: {e!r}") from e
        return cls(id=event_id, payload=payload)
