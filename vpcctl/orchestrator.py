"""
Resource lifecycle orchestrator.

Walks a plan forward to create resources or backward to delete them,
persisting every result to the ledger before the next step runs. A failed
step stops the run; nothing is rolled back, and the ledger is left as the
recovery point for a retry of the same action.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set, Tuple

from .errors import (
    DependencyMissing, LedgerIOFailed, NothingToDelete, ProviderCallFailed,
    ProvisioningTimeout, TeardownTimeout, VpcctlError,
)
from .events import EventTypes, emit_event, read_events
from .plan import Plan, PlanStep
from .poll import PollTimeout
from .state import Ledger, ResourceRecord

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of a completed create or delete run."""
    action: str
    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _emit(ledger: Ledger, event_type: str, data: Dict[str, Any]) -> None:
    try:
        emit_event(ledger.events_path, event_type, data)
    except OSError as e:
        raise LedgerIOFailed(str(ledger.events_path), e)


def _call(step: PlanStep, fn, *args):
    """Invoke a provider-facing function, attributing any failure to the step."""
    try:
        return fn(*args)
    except VpcctlError:
        raise
    except Exception as e:
        raise ProviderCallFailed(step.logical_name, e) from e


def _resolve_dependencies(step: PlanStep, ledger: Ledger) -> Dict[str, str]:
    resolved = {}
    missing = []
    for name in sorted(step.depends_on):
        provider_id = ledger.lookup(name)
        if provider_id is None:
            missing.append(name)
        else:
            resolved[name] = provider_id
    if missing:
        raise DependencyMissing(step.logical_name, missing)
    return resolved


def _create_step(step: PlanStep, ledger: Ledger) -> str:
    deps = _resolve_dependencies(step, ledger)

    logger.info(f"Creating {step.logical_name} ({step.resource_kind})...")
    provider_id = _call(step, step.create_fn, deps)
    if not provider_id:
        raise ProviderCallFailed(step.logical_name, ValueError("provider returned no identifier"))

    ledger.record(step.logical_name, provider_id)
    _emit(ledger, EventTypes.STEP_CREATED, {"step": step.logical_name, "id": provider_id})

    _finish_step(step, provider_id, deps, ledger)
    logger.info(f"{step.logical_name} created: {provider_id}")
    return provider_id


def _finish_step(step: PlanStep, provider_id: str, deps: Dict[str, str], ledger: Ledger) -> None:
    """Wait for a recorded resource and run its post-create work."""
    if step.wait_for_create_fn is not None:
        _emit(ledger, EventTypes.STEP_WAIT, {"step": step.logical_name, "id": provider_id})
        try:
            _call(step, step.wait_for_create_fn, provider_id)
        except ProviderCallFailed as e:
            if isinstance(e.cause, PollTimeout):
                raise ProvisioningTimeout(step.logical_name, e.cause.attempts) from e.cause
            raise
        _emit(ledger, EventTypes.STEP_READY, {"step": step.logical_name, "id": provider_id})

    if step.after_create_fn is not None:
        _call(step, step.after_create_fn, provider_id, deps)

    _emit(ledger, EventTypes.STEP_COMPLETE, {"step": step.logical_name, "id": provider_id})


def _unfinished_steps(ledger: Ledger) -> Set[Tuple[str, str]]:
    """
    (step, id) pairs that were recorded by a run but never completed.

    Entries the event log knows nothing about (e.g. a hand-written ledger)
    are not included.
    """
    unfinished = set()
    try:
        events = read_events(ledger.events_path)
    except OSError as e:
        raise LedgerIOFailed(str(ledger.events_path), e)
    for event in events:
        data = event.get("data", {})
        key = (data.get("step"), data.get("id"))
        if event.get("type") == EventTypes.STEP_CREATED:
            unfinished.add(key)
        elif event.get("type") == EventTypes.STEP_COMPLETE:
            unfinished.discard(key)
    return unfinished


def _fail(ledger: Ledger, action: str, step: PlanStep, error: VpcctlError) -> None:
    logger.error(str(error))
    _emit(ledger, EventTypes.ERROR, {
        "action": action,
        "step": step.logical_name,
        "reason": str(error),
    })


def create(plan: Plan, ledger: Ledger, resume: bool = False) -> RunResult:
    """
    Create every resource in the plan, in order.

    Args:
        plan: Plan to walk forward
        ledger: Ledger to record created resources in
        resume: Keep the existing ledger and skip steps already recorded,
            instead of starting from an empty ledger. A recorded step whose
            wait or post-create work never finished is finished first.

    Returns:
        RunResult listing the steps created (and skipped when resuming)

    Raises:
        DependencyMissing: If a dependency has no recorded id
        ProviderCallFailed: If a provider call for a step fails
        ProvisioningTimeout: If a step's readiness wait runs out of attempts
        LedgerIOFailed: If the ledger cannot be written
        LedgerLocked: If another run holds the ledger
    """
    result = RunResult(action="create")

    with ledger.lock():
        unfinished = _unfinished_steps(ledger) if resume else set()
        if not resume:
            ledger.reset()
        _emit(ledger, EventTypes.CREATE_START, {"steps": plan.names, "resume": resume})

        for step in plan:
            recorded_id = ledger.lookup(step.logical_name) if resume else None
            if recorded_id is not None and (step.logical_name, recorded_id) not in unfinished:
                logger.info(f"{step.logical_name} already recorded, skipping")
                result.skipped.append(step.logical_name)
                continue

            try:
                if recorded_id is None:
                    _create_step(step, ledger)
                else:
                    logger.info(f"{step.logical_name} recorded but not finished, resuming: {recorded_id}")
                    _finish_step(step, recorded_id, _resolve_dependencies(step, ledger), ledger)
            except VpcctlError as e:
                _fail(ledger, "create", step, e)
                raise
            result.completed.append(step.logical_name)

        _emit(ledger, EventTypes.CREATE_DONE, {"created": result.completed})

    logger.info("VPC setup completed successfully")
    return result


def _delete_step(step: PlanStep, provider_id: str, ledger: Ledger) -> None:
    # Dependencies are only informational here; some may already be gone.
    deps = {}
    for name in step.depends_on:
        dep_id = ledger.lookup(name)
        if dep_id is not None:
            deps[name] = dep_id

    logger.info(f"Deleting {step.logical_name}: {provider_id}")
    _call(step, step.delete_fn, provider_id, deps)

    if step.wait_for_delete_fn is not None:
        _emit(ledger, EventTypes.STEP_WAIT, {"step": step.logical_name, "id": provider_id})
        try:
            _call(step, step.wait_for_delete_fn, provider_id)
        except ProviderCallFailed as e:
            if isinstance(e.cause, PollTimeout):
                raise TeardownTimeout(step.logical_name, e.cause.attempts) from e.cause
            raise

    ledger.forget(step.logical_name)
    _emit(ledger, EventTypes.STEP_DELETED, {"step": step.logical_name, "id": provider_id})


def delete(plan: Plan, ledger: Ledger) -> RunResult:
    """
    Delete every recorded resource, walking the plan in reverse.

    Steps with nothing recorded are skipped. The caller is responsible for
    asking the operator for confirmation first.

    Returns:
        RunResult listing deleted and skipped steps

    Raises:
        NothingToDelete: If the ledger is missing or empty
        ProviderCallFailed: If a provider call for a step fails
        TeardownTimeout: If a step's deletion wait runs out of attempts
        LedgerIOFailed: If the ledger cannot be read or written
        LedgerLocked: If another run holds the ledger
    """
    if not ledger.exists() or ledger.is_empty():
        raise NothingToDelete(str(ledger.path))

    result = RunResult(action="delete")

    with ledger.lock():
        if ledger.is_empty():
            raise NothingToDelete(str(ledger.path))
        _emit(ledger, EventTypes.DELETE_START, {"records": len(ledger.records())})

        for step in plan.reversed():
            provider_id = ledger.lookup(step.logical_name)
            if provider_id is None:
                logger.info(f"{step.logical_name} not in ledger, skipping")
                _emit(ledger, EventTypes.STEP_SKIPPED, {"step": step.logical_name})
                result.skipped.append(step.logical_name)
                continue

            try:
                _delete_step(step, provider_id, ledger)
            except VpcctlError as e:
                _fail(ledger, "delete", step, e)
                raise
            result.completed.append(step.logical_name)

        leftovers = [r.logical_name for r in ledger.records()]
        if leftovers:
            # Entries the plan doesn't know about; keep them visible
            logger.warning(f"Ledger still holds unknown entries: {', '.join(leftovers)}")
        else:
            ledger.remove()
        _emit(ledger, EventTypes.DELETE_DONE, {"deleted": result.completed, "remaining": leftovers})

    logger.info("VPC deletion completed successfully")
    return result


def status(ledger: Ledger) -> List[ResourceRecord]:
    """Read-only view of the ledger. Never contacts the provider."""
    return ledger.records()
