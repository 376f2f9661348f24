"""
Salon Redemption Engine — Policies
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.catalog import GiftCertificate, RedemptionStatus, Voucher
from engines.redemption.codes import is_valid_code


def code_must_match_format_policy(code: str, prefix: str) -> Optional[RejectionReason]:
    if not is_valid_code(code, prefix):
        return RejectionReason(
            code=ReasonCode.INVALID_CODE,
            message=f"'{code}' is not a valid code.",
            policy_name="code_must_match_format_policy")
    return None


def voucher_must_be_claimable_policy(
    voucher: Voucher, today: date,
) -> Optional[RejectionReason]:
    if voucher.status != RedemptionStatus.ACTIVE:
        return RejectionReason(
            code=ReasonCode.NOT_CLAIMABLE,
            message=f"Voucher {voucher.code} is {voucher.status.value.lower()}.",
            policy_name="voucher_must_be_claimable_policy")
    if voucher.is_expired(today):
        return RejectionReason(
            code=ReasonCode.NOT_CLAIMABLE,
            message=f"Voucher {voucher.code} expired on {voucher.expires_on.isoformat()}.",
            policy_name="voucher_must_be_claimable_policy")
    return None


def gift_certificate_must_be_claimable_policy(
    certificate: GiftCertificate, today: date,
) -> Optional[RejectionReason]:
    if certificate.status != RedemptionStatus.ACTIVE:
        return RejectionReason(
            code=ReasonCode.NOT_CLAIMABLE,
            message=f"Gift certificate {certificate.code} is {certificate.status.value.lower()}.",
            policy_name="gift_certificate_must_be_claimable_policy")
    if certificate.is_expired(today):
        return RejectionReason(
            code=ReasonCode.NOT_CLAIMABLE,
            message=(
                f"Gift certificate {certificate.code} expired on "
                f"{certificate.expires_on.isoformat()}."
            ),
            policy_name="gift_certificate_must_be_claimable_policy")
    if not certificate.lines:
        return RejectionReason(
            code=ReasonCode.NOT_CLAIMABLE,
            message=f"Gift certificate {certificate.code} has no services to redeem.",
            policy_name="gift_certificate_must_be_claimable_policy")
    return None
