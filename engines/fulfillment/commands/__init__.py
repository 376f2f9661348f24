"""
Salon Fulfillment Engine — Actions
===================================
The four things staff can do to a service instance, and the
(from-state, action) → to-state table they obey.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple

from core.primitives.booking import InstanceStatus


class FulfillmentAction(Enum):
    CLAIM = "CLAIM"
    UNCLAIM = "UNCLAIM"
    SERVE = "SERVE"
    UNSERVE = "UNSERVE"


TRANSITION_TABLE: Dict[Tuple[InstanceStatus, FulfillmentAction], InstanceStatus] = {
    (InstanceStatus.UNCLAIMED, FulfillmentAction.CLAIM): InstanceStatus.CLAIMED,
    (InstanceStatus.CLAIMED, FulfillmentAction.UNCLAIM): InstanceStatus.UNCLAIMED,
    (InstanceStatus.CLAIMED, FulfillmentAction.SERVE): InstanceStatus.SERVED,
    (InstanceStatus.SERVED, FulfillmentAction.UNSERVE): InstanceStatus.CLAIMED,
}


def target_status(from_status: InstanceStatus, action: FulfillmentAction):
    """Destination state, or None when the pair is not a legal move."""
    return TRANSITION_TABLE.get((from_status, action))
