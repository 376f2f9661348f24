"""
Salon Fulfillment Engine — Policies
"""

from __future__ import annotations

from typing import Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.booking import InstanceStatus, ServiceInstance
from engines.fulfillment.commands import FulfillmentAction, target_status


def instance_must_not_be_claimed_by_other_policy(
    instance: ServiceInstance, action: FulfillmentAction, actor_id: str,
) -> Optional[RejectionReason]:
    if action != FulfillmentAction.CLAIM:
        return None
    if instance.status == InstanceStatus.CLAIMED and instance.claimed_by != actor_id:
        return RejectionReason(
            code=ReasonCode.ALREADY_CLAIMED,
            message=f"Service instance is already claimed by '{instance.claimed_by}'.",
            policy_name="instance_must_not_be_claimed_by_other_policy")
    return None


def transition_must_be_defined_policy(
    instance: ServiceInstance, action: FulfillmentAction, actor_id: str,
) -> Optional[RejectionReason]:
    if target_status(instance.status, action) is None:
        return RejectionReason(
            code=ReasonCode.INVALID_TRANSITION,
            message=f"Cannot {action.value.lower()} a {instance.status.value} service instance.",
            policy_name="transition_must_be_defined_policy")
    return None


def actor_must_hold_claim_policy(
    instance: ServiceInstance, action: FulfillmentAction, actor_id: str,
) -> Optional[RejectionReason]:
    if action not in (FulfillmentAction.UNCLAIM, FulfillmentAction.SERVE):
        return None
    if instance.claimed_by != actor_id:
        return RejectionReason(
            code=ReasonCode.NOT_OWNER,
            message=f"Only '{instance.claimed_by}' can {action.value.lower()} this service instance.",
            policy_name="actor_must_hold_claim_policy")
    return None


def actor_must_hold_or_have_served_policy(
    instance: ServiceInstance, action: FulfillmentAction, actor_id: str,
) -> Optional[RejectionReason]:
    if action != FulfillmentAction.UNSERVE:
        return None
    if actor_id not in (instance.claimed_by, instance.served_by):
        return RejectionReason(
            code=ReasonCode.NOT_OWNER,
            message="Only the claimant or the server can unserve this service instance.",
            policy_name="actor_must_hold_or_have_served_policy")
    return None


ACTION_POLICIES = {
    FulfillmentAction.CLAIM: (
        instance_must_not_be_claimed_by_other_policy,
        transition_must_be_defined_policy,
    ),
    FulfillmentAction.UNCLAIM: (
        transition_must_be_defined_policy,
        actor_must_hold_claim_policy,
    ),
    FulfillmentAction.SERVE: (
        transition_must_be_defined_policy,
        actor_must_hold_claim_policy,
    ),
    FulfillmentAction.UNSERVE: (
        transition_must_be_defined_policy,
        actor_must_hold_or_have_served_policy,
    ),
}
