# core/event_recorder.py
import json
import logging
import os
import datetime
import threading
from typing import Dict, Any

from core.config import EVENT_LOG_DIR

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_lock = threading.Lock()
_recorder = None


class EventRecorder:
    def __init__(self, log_dir: str = EVENT_LOG_DIR):
        self.run_id = f"run_{datetime.datetime.now(datetime.timezone.utc).strftime('%Y%m%d_%H%M%S')}"
        self.log_path = os.path.join(log_dir, "events.jsonl")

    def record(self, event_type: str, payload: Dict[str, Any], actor: str = "user"):
        """
        Appends a structured audit event (access decisions, roster loads).
        """
        entry = {
            "schema_version": SCHEMA_VERSION,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "run_id": self.run_id,
            "event_type": event_type,
            "actor": actor,
            "payload": payload,
        }

        try:
            with _lock:
                os.makedirs(os.path.dirname(self.log_path) or ".", exist_ok=True)
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry) + "\n")
                    f.flush()
        except OSError as e:
            # Never fail a request because the audit trail is unwritable
            logger.warning("Event logging failed: %s", e)


def get_event_recorder() -> EventRecorder:
    """Singleton accessor for the recorder."""
    global _recorder
    if _recorder is None:
        _recorder = EventRecorder()
    return _recorder
