"""Decides which messages deserve a notification."""
from typing import Iterable

from zulip_notify.event_queue.models import MessageFlag


IMPORTANT_FLAGS = frozenset({MessageFlag.MENTIONED, MessageFlag.HAS_ALERT_WORD})


def is_important(flags: Iterable[MessageFlag]) -> bool:
    """True if the message mentions the user or contains one of their alert words."""
    return not IMPORTANT_FLAGS.isdisjoint(flags)
