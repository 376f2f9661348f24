"""
Salon Fulfillment State Machine — Service Instance Transitions
===============================================================

    UNCLAIMED ──claim──▶ CLAIMED ──serve──▶ SERVED
        ◀──unclaim──         ◀──unserve──

RULES (NON-NEGOTIABLE):
- Pure: takes a snapshot, an actor and a timestamp, returns a
  TransitionResult; no I/O, no clock reads
- Exactly one staff member holds a claim at a time
- Only the claimant may unclaim or serve
- The claimant or the server may unserve
- Re-claiming an instance you already hold succeeds unchanged
- Every other (state, action) pair is INVALID_TRANSITION

A None snapshot or an empty actor is a caller bug and raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.commands.rejection import RejectionReason
from core.primitives.booking import InstanceStatus, ServiceInstance
from engines.fulfillment.commands import FulfillmentAction, target_status
from engines.fulfillment.policies import ACTION_POLICIES


# ══════════════════════════════════════════════════════════════
# RESULT TYPES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransitionResult:
    """
    Tagged result: exactly one of instance / reason is set.

    patch holds only the fields the store must write; version is
    the store's business and is never part of it.
    """
    action: FulfillmentAction
    instance: Optional[ServiceInstance] = None
    reason: Optional[RejectionReason] = None
    patch: Dict[str, Any] = field(default_factory=dict)
    changed: bool = True

    def __post_init__(self):
        if (self.instance is None) == (self.reason is None):
            raise ValueError("TransitionResult needs exactly one of instance or reason.")
        if self.reason is not None and self.patch:
            raise ValueError("A rejected transition carries no patch.")

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class WriteGuard:
    """What the store must still observe for a conditional write to apply."""
    expected_status: InstanceStatus
    expected_claimant: Optional[str]


# ══════════════════════════════════════════════════════════════
# INTERNALS
# ══════════════════════════════════════════════════════════════

def _check_inputs(instance: ServiceInstance, actor_id: str) -> None:
    if not isinstance(instance, ServiceInstance):
        raise TypeError(f"instance must be ServiceInstance, got {type(instance).__name__}.")
    if not isinstance(actor_id, str) or not actor_id.strip():
        raise ValueError("actor_id must be a non-empty string.")


def _patch_for(action: FulfillmentAction, actor_id: str, at: datetime) -> Dict[str, Any]:
    if action == FulfillmentAction.CLAIM:
        return {"status": InstanceStatus.CLAIMED, "claimed_by": actor_id, "claimed_at": at}
    if action == FulfillmentAction.UNCLAIM:
        return {"status": InstanceStatus.UNCLAIMED, "claimed_by": None, "claimed_at": None}
    if action == FulfillmentAction.SERVE:
        return {"status": InstanceStatus.SERVED, "served_by": actor_id, "served_at": at}
    return {"status": InstanceStatus.CLAIMED, "served_by": None, "served_at": None}


# ══════════════════════════════════════════════════════════════
# TRANSITIONS
# ══════════════════════════════════════════════════════════════

def apply(
    action: FulfillmentAction,
    instance: ServiceInstance,
    actor_id: str,
    at: datetime,
) -> TransitionResult:
    _check_inputs(instance, actor_id)
    if not isinstance(action, FulfillmentAction):
        raise TypeError("action must be FulfillmentAction.")

    if (
        action == FulfillmentAction.CLAIM
        and instance.status == InstanceStatus.CLAIMED
        and instance.claimed_by == actor_id
    ):
        return TransitionResult(action=action, instance=instance, changed=False)

    for policy in ACTION_POLICIES[action]:
        reason = policy(instance, action, actor_id)
        if reason is not None:
            return TransitionResult(action=action, reason=reason)

    patch = _patch_for(action, actor_id, at)
    return TransitionResult(
        action=action,
        instance=instance.with_changes(version=instance.version + 1, **patch),
        patch=patch,
    )


def claim(instance: ServiceInstance, actor_id: str, at: datetime) -> TransitionResult:
    return apply(FulfillmentAction.CLAIM, instance, actor_id, at)


def unclaim(instance: ServiceInstance, actor_id: str, at: datetime) -> TransitionResult:
    return apply(FulfillmentAction.UNCLAIM, instance, actor_id, at)


def serve(instance: ServiceInstance, actor_id: str, at: datetime) -> TransitionResult:
    return apply(FulfillmentAction.SERVE, instance, actor_id, at)


def unserve(instance: ServiceInstance, actor_id: str, at: datetime) -> TransitionResult:
    return apply(FulfillmentAction.UNSERVE, instance, actor_id, at)


def expected_guard(action: FulfillmentAction, instance: ServiceInstance) -> WriteGuard:
    """
    Guard for submitting `action` against the snapshot it was decided on.

    claim expects no claimant; unclaim/serve/unserve expect the
    claimant seen in the snapshot, which the policies have already
    matched against the actor.
    """
    if target_status(instance.status, action) is None:
        raise ValueError(
            f"No {action.value} transition from {instance.status.value}."
        )
    return WriteGuard(
        expected_status=instance.status,
        expected_claimant=instance.claimed_by,
    )


def reduce(
    instance: ServiceInstance,
    steps: Iterable[Tuple[FulfillmentAction, str, datetime]],
) -> Tuple[ServiceInstance, List[TransitionResult]]:
    """Fold a sequence of (action, actor, at) over a snapshot."""
    results = []
    for action, actor_id, at in steps:
        result = apply(action, instance, actor_id, at)
        results.append(result)
        if result.ok:
            instance = result.instance
    return instance, results
