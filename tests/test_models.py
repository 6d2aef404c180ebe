from datetime import datetime, timezone

import pytest

from zulip_notify.event_queue.models import (
    ApiFailure,
    ApiResult,
    ApiSuccess,
    Event,
    EventQueue,
    Heartbeat,
    Message,
    MessageEvent,
    MessageFlag,
    MessageKind,
    OtherEvent,
    StreamRecipient,
    User,
    UserRecipients,
)
from zulip_notify.zulip_client import ApiError, BAD_EVENT_QUEUE_ID, TransportError


def _local_time(timestamp):
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).astimezone().strftime("%H:%M:%S")


def test_stream_recipient_renders_with_hash():
    assert str(StreamRecipient("general")) == "#general"


def test_private_recipients_render_as_comma_joined_mentions():
    recipients = UserRecipients((User("A"), User("B")))
    assert str(recipients) == "@A,@B"


def test_private_message_without_recipients_renders_placeholder():
    assert str(UserRecipients(())) == "<no users>"


def test_site_repr_hides_token(site):
    assert "secret" not in repr(site)


def test_site_api_url(site):
    assert site.api_url("register") == "https://rust-lang.zulipchat.com/api/v1/register"


def test_message_from_stream_payload(payloads):
    data = payloads.message(7, content="hi", recipient="general", sender="Ferris")["message"]
    message = Message.from_dict(data)

    assert message.recipients == StreamRecipient("general")
    assert message.kind is MessageKind.STREAM
    assert message.timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert message.header() == f"[{_local_time(1700000000)}] @Ferris -> #general"
    assert str(message) == f"[{_local_time(1700000000)}] @Ferris -> #general: hi"


def test_message_from_private_payload(payloads):
    data = payloads.message(7, recipient=[{"full_name": "A", "email": "a@x"}, {"full_name": "B"}])["message"]
    message = Message.from_dict(data)

    assert message.kind is MessageKind.PRIVATE
    assert message.recipients == UserRecipients((User("A"), User("B")))
    assert message.header().endswith("@Ferris -> @A,@B")


def test_heartbeat_event():
    assert Event.from_dict({"id": 6, "type": "heartbeat"}) == Event(id=6, payload=Heartbeat())


def test_message_event_keeps_known_flags(payloads):
    event = Event.from_dict(payloads.message(7, flags=["read", "mentioned", "starred"]))

    assert event.id == 7
    assert isinstance(event.payload, MessageEvent)
    assert event.payload.flags == {MessageFlag.READ, MessageFlag.MENTIONED}


def test_unknown_event_type_decodes_as_other():
    event = Event.from_dict({"id": 9, "type": "typing", "op": "start"})
    assert event.payload == OtherEvent("typing")


@pytest.mark.parametrize(
    "raw",
    [
        {"type": "heartbeat"},
        {"id": "x", "type": "heartbeat"},
        {"id": 7, "type": "message", "flags": []},
        {"id": 7, "type": "message", "flags": [], "message": {"content": "x"}},
        "not an object",
    ],
)
def test_malformed_events_raise_transport_error(raw):
    with pytest.raises(TransportError):
        Event.from_dict(raw)


def test_message_with_unknown_kind_is_malformed(payloads):
    raw = payloads.message(7, kind="broadcast")
    with pytest.raises(TransportError):
        Event.from_dict(raw)


def test_api_result_success_and_error():
    success = ApiResult.from_response({"result": "success", "msg": "", "queue_id": "Q1"})
    assert isinstance(success, ApiSuccess)
    assert success.unwrap()["queue_id"] == "Q1"

    failure = ApiResult.from_response({"result": "error", "msg": "Bad event queue id", "code": BAD_EVENT_QUEUE_ID})
    assert isinstance(failure, ApiFailure)
    assert failure.code == BAD_EVENT_QUEUE_ID
    with pytest.raises(ApiError) as excinfo:
        failure.unwrap()
    assert excinfo.value.code == BAD_EVENT_QUEUE_ID
    assert excinfo.value.payload == {"msg": "Bad event queue id", "code": BAD_EVENT_QUEUE_ID}


def test_api_failure_without_code():
    failure = ApiResult.from_response({"result": "error", "msg": "nope", "code": 42})
    assert failure.code is None


def test_api_result_with_unknown_tag_is_transport_error():
    with pytest.raises(TransportError):
        ApiResult.from_response({"result": "partial"})


def test_queue_advance_never_moves_backwards(site):
    queue = EventQueue(site=site, queue_id="Q1", last_event_id=10)
    queue.advance([Event(id=8, payload=Heartbeat()), Event(id=9, payload=Heartbeat())])
    assert queue.last_event_id == 10

    queue.advance([Event(id=12, payload=Heartbeat()), Event(id=11, payload=Heartbeat())])
    assert queue.last_event_id == 12

    queue.advance([])
    assert queue.last_event_id == 12
