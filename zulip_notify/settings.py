"""Configuration for Zulip Notify."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _parse_bool(value: str, default: bool) -> bool:
    if not value:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Log files live in the user state directory, not next to the installed package
STATE_DIR = Path(os.getenv("XDG_STATE_HOME") or Path.home() / ".local" / "state") / "zulip-notify"
LOGS_DIR = Path(os.getenv("LOGS_DIR") or STATE_DIR / "logs")
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

# Sites (credentials file)
SITES_CONFIG = os.getenv("SITES_CONFIG", "config.json")

# Zulip API
SITE_URL_TEMPLATE = os.getenv("SITE_URL_TEMPLATE", "https://{name}.zulipchat.com/api/v1/")
USER_AGENT = os.getenv("USER_AGENT", "zulip-notify")
CONNECT_TIMEOUT = int(os.getenv("CONNECT_TIMEOUT", "10"))
POLL_TIMEOUT = int(os.getenv("POLL_TIMEOUT", "120"))  # must outlast the server heartbeat

# Supervisor
MAX_RESTARTS = int(os.getenv("MAX_RESTARTS", "0"))  # per site
RESTART_DELAY = int(os.getenv("RESTART_DELAY", "10"))  # seconds

# Notifications
NOTIFICATIONS_ENABLED = _parse_bool(os.getenv("NOTIFICATIONS_ENABLED", "true"), default=True)
NOTIFY_COMMAND = os.getenv("NOTIFY_COMMAND", "notify-send")


def validate_config():
    """Validate required configuration."""
    errors = []

    if not Path(SITES_CONFIG).is_file():
        errors.append(f"SITES_CONFIG not found: {SITES_CONFIG}")

    if "{name}" not in SITE_URL_TEMPLATE:
        errors.append(f"SITE_URL_TEMPLATE must contain '{{name}}': {SITE_URL_TEMPLATE}")

    if CONNECT_TIMEOUT <= 0:
        errors.append(f"CONNECT_TIMEOUT must be positive: {CONNECT_TIMEOUT}")

    if POLL_TIMEOUT <= 0:
        errors.append(f"POLL_TIMEOUT must be positive: {POLL_TIMEOUT}")

    if MAX_RESTARTS < 0:
        errors.append(f"MAX_RESTARTS cannot be negative: {MAX_RESTARTS}")

    if RESTART_DELAY < 0:
        errors.append(f"RESTART_DELAY cannot be negative: {RESTART_DELAY}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
