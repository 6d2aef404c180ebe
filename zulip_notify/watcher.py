"""Watches one site: long-polls its event queue and dispatches every event."""
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from zulip_notify.logging_conf import logger
from zulip_notify.classifier import is_important
from zulip_notify.event_queue.client import EventQueueClient
from zulip_notify.event_queue.models import Event, Heartbeat, MessageEvent, OtherEvent, Site


@dataclass
class WatcherOutcome:
    """How a watcher thread ended."""

    site_name: str
    error: Optional[BaseException] = None
    stopped: bool = False
    events_seen: int = 0

    @property
    def failed(self) -> bool:
        return self.error is not None

    def describe(self) -> str:
        if self.error is not None:
            return f"{self.site_name}: failed with {type(self.error).__name__}: {self.error}"
        if self.stopped:
            return f"{self.site_name}: stopped after {self.events_seen} events"
        return f"{self.site_name}: finished after {self.events_seen} events"


class SiteWatcher:
    """Drives one EventQueueClient until stopped or a fatal error occurs."""

    SITE_NAME_WIDTH = 20

    def __init__(self, site: Site, client: EventQueueClient, notifier, output: Callable[[str], None],
                 on_exit: Optional[Callable[[WatcherOutcome], None]] = None):
        self.site = site
        self.client = client
        self.notifier = notifier
        self.output = output
        self.on_exit = on_exit
        self.queue = None
        self.thread = None
        self._stop_event = threading.Event()

        self.events_seen = 0
        self.messages_seen = 0
        self.notifications_sent = 0
        self.unknown_events = 0

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def start(self):
        """Start the watcher in a background thread."""
        if self.running:
            logger.warning(f"Watcher for {self.site.name} is already running")
            return

        self._stop_event.clear()
        self.thread = threading.Thread(target=self._run, name=f"watch-{self.site.name}", daemon=True)
        self.thread.start()

    def stop(self):
        """Ask the watcher to stop after the poll in flight returns."""
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None):
        if self.thread:
            self.thread.join(timeout=timeout)

    def _run(self):
        """Thread body: run the loop and report how it ended."""
        outcome = WatcherOutcome(site_name=self.site.name)
        try:
            self.run()
            outcome.stopped = self.stop_requested
        except Exception as e:
            logger.error(f"Watcher for {self.site.name} failed: {e}", exc_info=True)
            outcome.error = e
        finally:
            outcome.events_seen = self.events_seen
            self.client.transport.close()
            if self.on_exit:
                self.on_exit(outcome)

    def run(self):
        """
        Register a queue and poll it forever.

        Returns only when stop() was called; any error that the client
        could not recover from propagates.
        """
        logger.info(f"Watching {self.site.name}")
        self.queue = self.client.register()
        logger.info(f"Queue for {self.site.name}: {self.queue.queue_id}")

        while not self.stop_requested:
            events = self.client.long_poll(self.queue)
            for event in events:
                if self.stop_requested:
                    break
                self.dispatch(event)

        logger.info(f"Stopped watching {self.site.name}")

    def dispatch(self, event: Event):
        """Handle a single event."""
        self.events_seen += 1
        payload = event.payload

        if isinstance(payload, Heartbeat):
            logger.debug(f"Heartbeat {event.id} from {self.site.name}")
        elif isinstance(payload, MessageEvent):
            self._handle_message(payload)
        elif isinstance(payload, OtherEvent):
            self.unknown_events += 1
            logger.warning(f"Unknown event type '{payload.type_name}' from {self.site.name} (id {event.id})")
        else:
            raise TypeError(f"unhandled event payload: {payload!r}")

    def _handle_message(self, event: MessageEvent):
        self.messages_seen += 1
        important = is_important(event.flags)
        message = event.message

        marker = "!" if important else " "
        self.output(f"{marker} {self.site.name:<{self.SITE_NAME_WIDTH}} {message}")

        if important:
            if self.notifier.notify(f"{self.site.name} {message.header()}", message.content):
                self.notifications_sent += 1
