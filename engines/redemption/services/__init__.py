"""
Salon Redemption Engine — Voucher & Gift Certificate Resolver
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from core.commands.outcomes import OperationResult
from core.commands.rejection import ReasonCode
from core.config.rules import SalonRules
from core.primitives.catalog import Branch
from core.store.contracts import SalonStore
from core.store.errors import AlreadyUsed, RecordNotFound, TransientStoreError
from core.store.retry import call_with_retry
from core.time.clock import Clock, SystemClock, today
from engines.booking.aggregate import BookingAggregate
from engines.booking.selection import build_booking_draft, resolve_selection
from engines.redemption.codes import (
    GIFT_CERTIFICATE_PREFIX,
    VOUCHER_PREFIX,
    generate_code,
    normalize_code,
)
from engines.redemption.policies import (
    code_must_match_format_policy,
    gift_certificate_must_be_claimable_policy,
    voucher_must_be_claimable_policy,
)

logger = logging.getLogger("salon.redemption")


@dataclass(frozen=True)
class VoucherCheck:
    voucher_id: str
    code: str
    value: int

    def to_dict(self) -> dict:
        return {"voucher_id": self.voucher_id, "code": self.code, "value": self.value}


def _transient(label: str) -> OperationResult:
    return OperationResult.reject(
        ReasonCode.TRANSIENT_IO,
        f"The store is temporarily unavailable ({label}). Please try again.",
        "store_must_be_reachable_policy",
    )


def _unknown_code(code: str) -> OperationResult:
    # Unknown codes read exactly like malformed ones.
    return OperationResult.reject(
        ReasonCode.INVALID_CODE,
        f"'{code}' is not a valid code.",
        "code_must_exist_policy",
    )


class VoucherGiftCertificateResolver:
    """
    Checks vouchers and gift certificates, and redeems a gift
    certificate into a zero-charge booking in one atomic step.

    Voucher consumption itself happens inside booking creation
    (see BookingService.create_booking).
    """

    def __init__(self, *, store: SalonStore, clock: Optional[Clock] = None,
                 rules: Optional[SalonRules] = None):
        self._store = store
        self._clock = clock or SystemClock()
        self._rules = rules or SalonRules()

    def _read(self, operation, label: str):
        return call_with_retry(
            operation, retries=self._rules.transient_retries, label=label,
        )

    # ── vouchers ──────────────────────────────────────────────

    def check_voucher(self, raw_code: str) -> OperationResult:
        code = normalize_code(raw_code)
        rejection = code_must_match_format_policy(code, VOUCHER_PREFIX)
        if rejection is not None:
            return OperationResult.fail(rejection)

        try:
            voucher = self._read(
                lambda: self._store.get_voucher_by_code(code), "voucher lookup",
            )
        except TransientStoreError:
            return _transient("voucher lookup")

        if voucher is None:
            logger.info(f"Voucher check for unknown code {code}")
            return _unknown_code(code)

        rejection = voucher_must_be_claimable_policy(voucher, today(self._clock))
        if rejection is not None:
            return OperationResult.fail(rejection)

        return OperationResult.ok(VoucherCheck(
            voucher_id=voucher.voucher_id, code=voucher.code, value=voucher.value,
        ))

    def generate_voucher_code(self) -> str:
        return generate_code(
            VOUCHER_PREFIX,
            lambda code: self._store.get_voucher_by_code(code) is not None,
            max_attempts=self._rules.code_generation_attempts,
        )

    # ── gift certificates ─────────────────────────────────────

    def check_gift_certificate(self, raw_code: str) -> OperationResult:
        """Validate a code and return the certificate without changing it."""
        code = normalize_code(raw_code)
        rejection = code_must_match_format_policy(code, GIFT_CERTIFICATE_PREFIX)
        if rejection is not None:
            return OperationResult.fail(rejection)

        try:
            certificate = self._read(
                lambda: self._store.get_gift_certificate_by_code(code),
                "gift certificate lookup",
            )
        except TransientStoreError:
            return _transient("gift certificate lookup")

        if certificate is None:
            return _unknown_code(code)

        rejection = gift_certificate_must_be_claimable_policy(
            certificate, today(self._clock),
        )
        if rejection is not None:
            return OperationResult.fail(rejection)
        return OperationResult.ok(certificate)

    def claim_gift_certificate(
        self,
        certificate_id: str,
        *,
        branch: Branch = Branch.NAILS,
    ) -> OperationResult:
        """
        Create a booking holding the certificate's bundle at zero
        charge and mark the certificate USED. Both happen or neither.
        """
        try:
            certificate = self._read(
                lambda: self._store.get_gift_certificate(certificate_id),
                "gift certificate lookup",
            )
        except TransientStoreError:
            return _transient("gift certificate lookup")

        if certificate is None:
            return OperationResult.reject(
                ReasonCode.NOT_FOUND,
                f"Gift certificate '{certificate_id}' not found.",
                "gift_certificate_must_exist_policy",
            )

        now = self._clock.now_utc()
        rejection = gift_certificate_must_be_claimable_policy(certificate, now.date())
        if rejection is not None:
            return OperationResult.fail(rejection)

        try:
            resolved = self._read(
                lambda: resolve_selection(
                    certificate.lines, self._store, self._rules.max_quantity,
                ),
                "catalog lookup",
            )
        except TransientStoreError:
            return _transient("catalog lookup")
        if not resolved.success:
            return resolved

        selection = resolved.data
        base = selection.breakdown(0, self._rules.max_quantity)
        pricing = selection.breakdown(base.subtotal, self._rules.max_quantity)
        draft = build_booking_draft(
            branch=branch,
            appointment_date=now.date(),
            appointment_time=now.time().replace(microsecond=0),
            selection=selection,
            pricing=pricing,
            created_at=now,
            customer_id=certificate.customer_id,
            customer_name=certificate.customer_name,
            notes=f"Gift certificate {certificate.code}",
        )

        try:
            booking, instances = self._store.claim_gift_certificate(
                certificate.certificate_id, draft,
            )
        except AlreadyUsed:
            logger.warning(f"Gift certificate {certificate.code} lost a concurrent claim")
            return OperationResult.reject(
                ReasonCode.NOT_CLAIMABLE,
                f"Gift certificate {certificate.code} has already been claimed.",
                "gift_certificate_must_be_claimable_policy",
            )
        except RecordNotFound:
            return OperationResult.reject(
                ReasonCode.NOT_FOUND,
                f"Gift certificate '{certificate_id}' not found.",
                "gift_certificate_must_exist_policy",
            )
        except TransientStoreError:
            return _transient("gift certificate claim")

        logger.info(
            f"Gift certificate {certificate.code} redeemed into booking "
            f"{booking.booking_id} ({len(instances)} instance(s))"
        )
        return OperationResult.ok(BookingAggregate(booking, instances))

    def generate_gift_certificate_code(self) -> str:
        return generate_code(
            GIFT_CERTIFICATE_PREFIX,
            lambda code: self._store.get_gift_certificate_by_code(code) is not None,
            max_attempts=self._rules.code_generation_attempts,
        )
