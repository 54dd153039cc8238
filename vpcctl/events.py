"""
Event logging utilities for NDJSON format.

Every orchestrator transition is appended to an events file that sits next
to the ledger, so ``vpcctl status`` can tell a finished run from one that
stopped half-way.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List


def emit_event(events_file: Path, event_type: str, data: Dict[str, Any]) -> None:
    """
    Append an event to the events file.

    Args:
        events_file: Path of the NDJSON events file
        event_type: Event type (e.g., "CREATE_START", "STEP_CREATED", "ERROR")
        data: Event data
    """
    event = {
        "ts": datetime.now().isoformat(),
        "type": event_type,
        "data": data
    }

    with open(events_file, "a") as f:
        f.write(json.dumps(event) + "\n")
        f.flush()


def read_events(events_file: Path) -> List[Dict[str, Any]]:
    """
    Read all events from an events file.

    Args:
        events_file: Path of the NDJSON events file

    Returns:
        List of events
    """
    if not events_file.exists():
        return []

    events = []
    with open(events_file, "r") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue  # Skip malformed lines

    return events


class EventTypes:
    CREATE_START = "CREATE_START"
    STEP_CREATED = "STEP_CREATED"
    STEP_WAIT = "STEP_WAIT"
    STEP_READY = "STEP_READY"
    STEP_COMPLETE = "STEP_COMPLETE"
    CREATE_DONE = "CREATE_DONE"
    DELETE_START = "DELETE_START"
    STEP_DELETED = "STEP_DELETED"
    STEP_SKIPPED = "STEP_SKIPPED"
    DELETE_DONE = "DELETE_DONE"
    ERROR = "ERROR"
