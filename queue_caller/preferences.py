"""The only local state: whether audio was enabled last time.

Audio devices on kiosks often need an operator to switch sound on once; after
that the board should come back with sound after a restart.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path.home() / ".queue_caller.json"


def load_audio_enabled(path: Path = DEFAULT_PATH) -> bool:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return False
    except (OSError, ValueError) as e:
        logger.warning("ignoring unreadable preferences %s: %s", path, e)
        return False
    return isinstance(data, dict) and data.get("audio_enabled") is True


def save_audio_enabled(enabled: bool, path: Path = DEFAULT_PATH) -> None:
    try:
        path.write_text(json.dumps({"audio_enabled": enabled}), encoding="utf-8")
    except OSError as e:
        logger.warning("could not save preferences %s: %s", path, e)
