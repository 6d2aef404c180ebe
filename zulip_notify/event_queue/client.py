"""Event queue registration and long polling for one site."""
import json
from typing import List

from zulip_notify.logging_conf import logger
from zulip_notify.zulip_client import BAD_EVENT_QUEUE_ID, TransportError, ZulipTransport
from zulip_notify.event_queue.models import ApiFailure, ApiResult, Event, EventQueue, Site


class EventQueueClient:
    """Registers a message event queue and long-polls it, re-registering when it expires."""

    def __init__(self, site: Site, transport: ZulipTransport):
        self.site = site
        self.transport = transport
        self.reconnects = 0

    def register(self) -> EventQueue:
        """
        Register a new event queue for message events on the user's own streams.

        Raises:
            ApiError if the server refuses the registration
            TransportError on network or decoding failure
        """
        body = self.transport.post("register", params={
            "event_types": json.dumps(["message"]),
            "all_public_streams": "false",
        })
        data = ApiResult.from_response(body).unwrap()

        try:
            queue = EventQueue(
                site=self.site,
                queue_id=str(data["queue_id"]),
                last_event_id=int(data["last_event_id"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"malformed register response: {e!r}") from e

        logger.debug(f"Registered queue {queue.queue_id} for {self.site.name} at event {queue.last_event_id}")
        return queue

    def long_poll(self, queue: EventQueue) -> List[Event]:
        """
        Block until the server has events for the queue and return them.

        The cursor on ``queue`` is advanced in place. An expired queue is
        replaced in place by a fresh registration and an empty batch is
        returned; the caller simply polls again.

        Raises:
            ApiError for any server error other than an expired queue
            TransportError on network or decoding failure
        """
        body = self.transport.get("events", params={
            "queue_id": queue.queue_id,
            "last_event_id": queue.last_event_id,
            "dont_block": "false",
        })
        result = ApiResult.from_response(body)

        if isinstance(result, ApiFailure) and result.code == BAD_EVENT_QUEUE_ID:
            logger.info(f"Queue {queue.queue_id} for {self.site.name} expired, registering a new one")
            queue.replace_with(self.register())
            self.reconnects += 1
            logger.info(f"Queue for {self.site.name}: {queue.queue_id}")
            return []

        data = result.unwrap()
        raw_events = data.get("events")
        if not isinstance(raw_events, list):
            raise TransportError(f"poll response without an events list: {str(data)[:200]}")

        events = [Event.from_dict(raw) for raw in raw_events]
        if not events:
            logger.debug(f"Empty poll batch for {self.site.name}, polling again")
            return []

        queue.advance(events)
        return events
