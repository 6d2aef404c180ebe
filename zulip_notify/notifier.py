"""Output sinks: console lines and desktop notifications."""
import shutil
import subprocess
import sys
import threading

from zulip_notify import settings
from zulip_notify.logging_conf import logger


APP_NAME = "zulip-notify"


class ConsoleOutput:
    """Writes one line per message; shared by all watchers, so writes are serialized."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self._lock = threading.Lock()

    def __call__(self, line: str) -> None:
        with self._lock:
            self.stream.write(line + "\n")
            self.stream.flush()


class DesktopNotifier:
    """Shows desktop notifications through notify-send (or a compatible command)."""

    def __init__(self, command: str = None, enabled: bool = None, timeout: int = 10):
        self.command = command or settings.NOTIFY_COMMAND
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled
        self.timeout = timeout

    def available(self) -> bool:
        return shutil.which(self.command) is not None

    def notify(self, summary: str, body: str) -> bool:
        """Show a notification. Returns False if it could not be shown."""
        if not self.enabled:
            logger.debug(f"Notifications disabled, skipping: {summary}")
            return False

        try:
            subprocess.run(
                [self.command, "--app-name", APP_NAME, summary, body],
                check=True,
                timeout=self.timeout,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
            return True
        except FileNotFoundError:
            logger.warning(f"Notification command not found: {self.command}")
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode(errors="replace").strip()
            logger.warning(f"Notification command failed ({e.returncode}): {stderr}")
        except subprocess.TimeoutExpired:
            logger.warning(f"Notification command timed out after {self.timeout}s")
        return False
