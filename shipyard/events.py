"""
Run journal: one NDJSON event per line in <state_home>/<run_id>/events.ndjson.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .settings import Settings
from .state import get_run_dir

logger = logging.getLogger(__name__)

EVENTS_FILE = "events.ndjson"


class EventTypes:
    RUN_START = "RUN_START"
    STAGE_START = "STAGE_START"
    STAGE_DONE = "STAGE_DONE"
    STAGE_FAILED = "STAGE_FAILED"
    RUN_DONE = "RUN_DONE"


def emit_event(run_id: str, event_type: str, data: Dict[str, Any],
               settings: Optional[Settings] = None) -> None:
    """
    Append an event to the run's journal.

    Args:
        run_id: Run ID
        event_type: One of EventTypes
        data: Event data, already redacted
    """
    events_file = get_run_dir(run_id, settings) / EVENTS_FILE
    event = {
        "ts": datetime.now().isoformat(),
        "type": event_type,
        "data": data,
    }
    with open(events_file, "a", encoding="utf-8") as f:
        f.write(json.dumps(event, default=str) + "\n")
        f.flush()


def read_events(run_id: str, settings: Optional[Settings] = None) -> List[Dict[str, Any]]:
    """Read every event of a run; malformed lines are skipped."""
    events_file = get_run_dir(run_id, settings) / EVENTS_FILE
    if not events_file.exists():
        return []

    events = []
    with open(events_file, "r", encoding="utf-8") as f:
        for number, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping malformed event on line %d of %s", number, events_file)
    return events


def get_last_event(run_id: str, settings: Optional[Settings] = None) -> Optional[Dict[str, Any]]:
    events = read_events(run_id, settings)
    return events[-1] if events else None


def get_status_from_events(run_id: str, settings: Optional[Settings] = None) -> str:
    """
    Derive a run's status from its journal.

    Returns:
        "unknown", "running", "succeeded" or "failed"
    """
    last = get_last_event(run_id, settings)
    if not last:
        return "unknown"
    if last.get("type") == EventTypes.RUN_DONE:
        return "succeeded" if last.get("data", {}).get("ok") else "failed"
    if last.get("type") == EventTypes.STAGE_FAILED:
        return "failed"
    return "running"
