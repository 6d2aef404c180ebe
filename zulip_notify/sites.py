"""Loads the list of sites to watch from the credentials file."""
import json
from pathlib import Path
from typing import List, Union

from zulip_notify.event_queue.models import Site


REQUIRED_FIELDS = ("name", "user", "token")


def load_sites(path: Union[str, Path]) -> List[Site]:
    """
    Read ``{"sites": [{"name": ..., "user": ..., "token": ...}, ...]}``.

    Raises:
        ValueError if the file is missing, unreadable or malformed
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ValueError(f"Sites config not found: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Sites config is not valid JSON: {path}: {e}")

    entries = data.get("sites") if isinstance(data, dict) else None
    if not isinstance(entries, list) or not entries:
        raise ValueError(f"Sites config must contain a non-empty 'sites' list: {path}")

    sites = []
    seen = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"Site #{index} must be an object")

        missing = [key for key in REQUIRED_FIELDS if not isinstance(entry.get(key), str) or not entry[key].strip()]
        if missing:
            raise ValueError(f"Site #{index} is missing {', '.join(missing)}")

        name = entry["name"].strip()
        if name in seen:
            raise ValueError(f"Duplicate site name: {name}")
        seen.add(name)

        sites.append(Site(name=name, user=entry["user"].strip(), token=entry["token"].strip()))

    return sites
