"""
Status derivation from the ledger and the run event log.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .events import EventTypes, read_events
from .state import Ledger, ResourceRecord


class RunState(Enum):
    """Lifecycle state of the most recent run."""
    IDLE = "idle"
    CREATING = "creating"
    CREATED = "created"
    DELETING = "deleting"
    DELETED = "deleted"
    FAILED = "failed"


@dataclass
class StatusInfo:
    """Everything `vpcctl status` shows."""
    state: RunState
    message: str
    records: List[ResourceRecord] = field(default_factory=list)
    failed_step: Optional[str] = None
    failure_reason: Optional[str] = None
    last_event: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "message": self.message,
            "resources": {r.logical_name: r.provider_id for r in self.records},
            "failed_step": self.failed_step,
            "failure_reason": self.failure_reason,
        }


class StatusDeriver:
    """Derives run state from events, and pairs it with the ledger contents."""

    def derive_status(self, events: List[Dict[str, Any]], records: List[ResourceRecord],
                      run_active: bool = False) -> StatusInfo:
        """
        Derive the current state.

        Args:
            events: Events in file order
            records: Current ledger records
            run_active: Whether a run currently holds the ledger lock

        Returns:
            StatusInfo
        """
        if not events:
            return StatusInfo(
                state=RunState.IDLE,
                message="No runs recorded" if not records else "Resources recorded, no run history",
                records=records,
            )

        last_event = events[-1]
        state = self._derive_from_events(events)

        if state == RunState.FAILED:
            data = last_event.get("data", {})
            return StatusInfo(
                state=state,
                message=self._get_status_message(state, last_event),
                records=records,
                failed_step=data.get("step"),
                failure_reason=data.get("reason"),
                last_event=last_event,
            )

        if state in (RunState.CREATING, RunState.DELETING) and not run_active:
            # The run ended without a DONE or ERROR event, i.e. the process was killed
            return StatusInfo(
                state=RunState.FAILED,
                message=f"{self._get_status_message(state, last_event)} (interrupted)",
                records=records,
                failed_step=last_event.get("data", {}).get("step"),
                failure_reason="run interrupted",
                last_event=last_event,
            )

        return StatusInfo(
            state=state,
            message=self._get_status_message(state, last_event),
            records=records,
            last_event=last_event,
        )

    def _derive_from_events(self, events: List[Dict[str, Any]]) -> RunState:
        event_to_status = {
            EventTypes.CREATE_START: RunState.CREATING,
            EventTypes.CREATE_DONE: RunState.CREATED,
            EventTypes.DELETE_START: RunState.DELETING,
            EventTypes.DELETE_DONE: RunState.DELETED,
            EventTypes.ERROR: RunState.FAILED,
        }

        for event in reversed(events):
            event_type = event.get("type", "")
            if event_type in event_to_status:
                return event_to_status[event_type]

        return RunState.IDLE

    def _get_status_message(self, state: RunState, last_event: Dict[str, Any]) -> str:
        messages = {
            RunState.IDLE: "No runs recorded",
            RunState.CREATING: "Creating VPC resources",
            RunState.CREATED: "VPC created",
            RunState.DELETING: "Deleting VPC resources",
            RunState.DELETED: "VPC deleted",
            RunState.FAILED: "Last run failed",
        }

        base_message = messages.get(state, "Unknown status")
        step = last_event.get("data", {}).get("step")
        if state == RunState.FAILED and step:
            return f"{base_message} at {step}"
        return base_message


def ledger_status(ledger: Ledger) -> StatusInfo:
    """Derive status for a ledger from its records and events file."""
    return StatusDeriver().derive_status(
        read_events(ledger.events_path),
        ledger.records(),
        run_active=ledger.lock_path.exists(),
    )
