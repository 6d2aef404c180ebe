"""Main application - watches Zulip sites and notifies on mentions and alert words."""
import signal
import sys

from zulip_notify.logging_conf import logger
from zulip_notify import settings
from zulip_notify.notifier import ConsoleOutput, DesktopNotifier
from zulip_notify.sites import load_sites
from zulip_notify.supervisor import Supervisor, default_watcher_factory


EXIT_OK = 0
EXIT_FAILURE = 1


class Application:
    """Loads the sites and supervises one watcher per site."""

    def __init__(self, sites=None, notifier=None, output=None):
        self.sites = sites
        self.notifier = notifier or DesktopNotifier()
        self.output = output or ConsoleOutput()
        self.supervisor = None

    def start(self):
        """Validate configuration and build the supervisor."""
        if self.sites is None:
            settings.validate_config()
            self.sites = load_sites(settings.SITES_CONFIG)

        logger.info("=" * 50)
        logger.info("Zulip Notify")
        logger.info("=" * 50)
        logger.info(f"Sites: {', '.join(site.name for site in self.sites)}")
        logger.info(f"Notifications: {'on' if self.notifier.enabled else 'off'} ({self.notifier.command})")
        logger.info(f"Restarts per site: {settings.MAX_RESTARTS}")
        logger.info("=" * 50)

        if self.notifier.enabled and not self.notifier.available():
            logger.warning(f"Notification command '{self.notifier.command}' not found on PATH")

        self.supervisor = Supervisor(
            self.sites,
            watcher_factory=default_watcher_factory(notifier=self.notifier, output=self.output),
        )

    def stop(self):
        """Stop all watchers."""
        if self.supervisor:
            self.supervisor.stop()

    def run(self) -> int:
        """Run until every watcher has ended. Returns the process exit code."""
        self.start()
        outcomes = self.supervisor.run()

        logger.info("Watcher summary:")
        for outcome in outcomes:
            log = logger.error if outcome.failed else logger.info
            log(f"  {outcome.describe()}")

        return EXIT_FAILURE if self.supervisor.failed else EXIT_OK


def main():
    """Entry point."""
    app = Application()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        app.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        exit_code = app.run()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(EXIT_FAILURE)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
