"""Runs one watcher per site and reports each failure the moment it happens."""
import queue
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from zulip_notify import settings
from zulip_notify.logging_conf import logger
from zulip_notify.event_queue.client import EventQueueClient
from zulip_notify.event_queue.models import Site
from zulip_notify.notifier import ConsoleOutput, DesktopNotifier
from zulip_notify.watcher import SiteWatcher, WatcherOutcome
from zulip_notify.zulip_client import ZulipTransport


WatcherFactory = Callable[[Site, Callable[[WatcherOutcome], None]], SiteWatcher]


def default_watcher_factory(notifier=None, output=None) -> WatcherFactory:
    """Build watchers with a fresh transport and client per site; sinks are shared."""
    notifier = notifier or DesktopNotifier()
    output = output or ConsoleOutput()

    def factory(site: Site, on_exit: Callable[[WatcherOutcome], None]) -> SiteWatcher:
        client = EventQueueClient(site, ZulipTransport(site))
        return SiteWatcher(site, client, notifier=notifier, output=output, on_exit=on_exit)

    return factory


class Supervisor:
    """Starts, watches and optionally restarts one SiteWatcher per site."""

    def __init__(self, sites: List[Site], watcher_factory: Optional[WatcherFactory] = None,
                 max_restarts: Optional[int] = None, restart_delay: Optional[float] = None):
        self.sites = {site.name: site for site in sites}
        self.watcher_factory = watcher_factory or default_watcher_factory()
        self.max_restarts = settings.MAX_RESTARTS if max_restarts is None else max_restarts
        self.restart_delay = settings.RESTART_DELAY if restart_delay is None else restart_delay

        self.outcomes: Dict[str, WatcherOutcome] = {}
        self.restarts: Dict[str, int] = {name: 0 for name in self.sites}

        self._watchers: Dict[str, SiteWatcher] = {}
        self._pending_restarts: Dict[str, float] = {}
        self._last_failure: Dict[str, WatcherOutcome] = {}
        self._cancelled = set()
        self._outcome_queue: "queue.Queue[WatcherOutcome]" = queue.Queue()
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._started = False

    @property
    def failed(self) -> List[WatcherOutcome]:
        return [outcome for outcome in self.outcomes.values() if outcome.failed]

    def watcher(self, name: str) -> Optional[SiteWatcher]:
        with self._lock:
            return self._watchers.get(name)

    def start(self):
        """Start a watcher for every site."""
        if self._started:
            return
        self._started = True
        logger.info(f"Starting watchers for {len(self.sites)} site(s): {', '.join(self.sites)}")
        for name in self.sites:
            if not self._start_watcher(name):
                self.outcomes[name] = self._cancelled_outcome(name)

    def stop_site(self, name: str):
        """Stop one site's watcher; the others keep running."""
        with self._lock:
            self._cancelled.add(name)
            was_pending = self._pending_restarts.pop(name, None) is not None
            watcher = self._watchers.get(name)
        if was_pending:
            logger.info(f"Cancelled pending restart for {name}")
            self.outcomes[name] = self._cancelled_outcome(name)
        if watcher:
            logger.info(f"Stopping watcher for {name}")
            watcher.stop()

    def stop(self):
        """Stop every watcher."""
        self._stop_event.set()
        with self._lock:
            watchers = list(self._watchers.values())
        for watcher in watchers:
            watcher.stop()

    def run(self, poll_interval: float = 1.0) -> List[WatcherOutcome]:
        """
        Start all watchers and block until none is left running.

        Returns:
            The final outcome of every site
        """
        self.start()

        while not self._stop_event.is_set():
            with self._lock:
                if not self._watchers and not self._pending_restarts:
                    break

            try:
                outcome = self._outcome_queue.get(timeout=poll_interval)
            except queue.Empty:
                outcome = None

            if outcome is not None:
                self._handle_outcome(outcome)
            self._start_due_restarts()

        if self._stop_event.is_set():
            self._collect_after_stop()

        return [self.outcomes[name] for name in self.sites if name in self.outcomes]

    def _start_watcher(self, name: str) -> bool:
        """Start a watcher unless the site was cancelled meanwhile."""
        watcher = self.watcher_factory(self.sites[name], self._outcome_queue.put)
        with self._lock:
            if name in self._cancelled:
                return False
            self._watchers[name] = watcher
            watcher.start()
        return True

    def _cancelled_outcome(self, name: str) -> WatcherOutcome:
        """Outcome for a site cancelled while no watcher was running; keeps the last failure."""
        last_failure = self._last_failure.get(name)
        if last_failure is not None:
            return replace(last_failure, stopped=True)
        return WatcherOutcome(site_name=name, stopped=True)

    def _handle_outcome(self, outcome: WatcherOutcome):
        name = outcome.site_name
        with self._lock:
            self._watchers.pop(name, None)
            cancelled = name in self._cancelled

        if not outcome.failed:
            logger.info(f"Watcher {outcome.describe()}")
            self.outcomes[name] = outcome
            return

        logger.error(f"Watcher {outcome.describe()}")

        if cancelled or self._stop_event.is_set() or self.restarts[name] >= self.max_restarts:
            self.outcomes[name] = outcome
            return

        self.restarts[name] += 1
        self._last_failure[name] = outcome
        logger.info(
            f"Restarting watcher for {name} in {self.restart_delay}s "
            f"(restart {self.restarts[name]}/{self.max_restarts})"
        )
        with self._lock:
            self._pending_restarts[name] = time.monotonic() + self.restart_delay

    def _start_due_restarts(self):
        now = time.monotonic()
        with self._lock:
            due = [name for name, at in self._pending_restarts.items() if at <= now]
            for name in due:
                del self._pending_restarts[name]
        for name in due:
            if not self._start_watcher(name):
                self.outcomes[name] = self._cancelled_outcome(name)

    def _collect_after_stop(self):
        """Record outcomes for watchers still blocked in a long poll when stop() was called."""
        while True:
            try:
                self._handle_outcome(self._outcome_queue.get_nowait())
            except queue.Empty:
                break

        with self._lock:
            watchers = dict(self._watchers)
            pending = list(self._pending_restarts)
            self._watchers.clear()
            self._pending_restarts.clear()

        for name, watcher in watchers.items():
            self.outcomes[name] = WatcherOutcome(site_name=name, stopped=True, events_seen=watcher.events_seen)
        for name in pending:
            self.outcomes[name] = self._last_failure[name]
