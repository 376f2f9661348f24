"""
Salon Store - Relational State
==============================
Tables behind DjangoSalonStore. Money columns hold integer minor
units; commission rates are stored as fixed-point percentages.

Ids are strings so the same identifiers flow through the in-memory
and relational stores unchanged.
"""

from __future__ import annotations

from django.db import models


class BranchChoice(models.TextChoices):
    NAILS = "NAILS", "Nails"
    SKIN = "SKIN", "Skin"
    LASHES = "LASHES", "Lashes"
    MASSAGE = "MASSAGE", "Massage"


class RedemptionStatusChoice(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    USED = "USED", "Used"
    EXPIRED = "EXPIRED", "Expired"


class SelectionKindChoice(models.TextChoices):
    SERVICE = "SERVICE", "Service"
    SERVICE_SET = "SERVICE_SET", "Service set"


class BookingStatusChoice(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CONFIRMED = "CONFIRMED", "Confirmed"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"
    NO_SHOW = "NO_SHOW", "No show"


class InstanceStatusChoice(models.TextChoices):
    UNCLAIMED = "UNCLAIMED", "Unclaimed"
    CLAIMED = "CLAIMED", "Claimed"
    SERVED = "SERVED", "Served"


class CommissionStatusChoice(models.TextChoices):
    APPLIED = "APPLIED", "Applied"
    REVERTED = "REVERTED", "Reverted"


# ══════════════════════════════════════════════════════════════
# CATALOG
# ══════════════════════════════════════════════════════════════

class ServiceRecord(models.Model):
    service_id = models.CharField(primary_key=True, max_length=64)
    title = models.CharField(max_length=255)
    price = models.BigIntegerField()
    duration_minutes = models.PositiveIntegerField(default=0)
    branch = models.CharField(max_length=20, choices=BranchChoice.choices)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "salon_services"
        ordering = ["service_id"]

    def __str__(self) -> str:
        return f"{self.service_id} ({self.title})"


class ServiceSetRecord(models.Model):
    service_set_id = models.CharField(primary_key=True, max_length=64)
    title = models.CharField(max_length=255)
    price = models.BigIntegerField()
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "salon_service_sets"
        ordering = ["service_set_id"]

    def __str__(self) -> str:
        return f"{self.service_set_id} ({self.title})"


class ServiceSetItemRecord(models.Model):
    service_set = models.ForeignKey(
        ServiceSetRecord,
        on_delete=models.PROTECT,
        related_name="items",
        db_column="service_set_id",
    )
    service = models.ForeignKey(
        ServiceRecord,
        on_delete=models.PROTECT,
        related_name="set_items",
        db_column="service_id",
    )
    adjusted_price = models.BigIntegerField(null=True, blank=True)
    position = models.PositiveIntegerField()

    class Meta:
        db_table = "salon_service_set_items"
        ordering = ["service_set_id", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["service_set", "position"],
                name="uq_set_item_position",
            ),
        ]


# ══════════════════════════════════════════════════════════════
# REDEMPTION
# ══════════════════════════════════════════════════════════════

class VoucherRecord(models.Model):
    voucher_id = models.CharField(primary_key=True, max_length=64)
    code = models.CharField(max_length=32, unique=True)
    value = models.BigIntegerField()
    status = models.CharField(
        max_length=20,
        choices=RedemptionStatusChoice.choices,
        default=RedemptionStatusChoice.ACTIVE,
    )
    expires_on = models.DateField(null=True, blank=True)
    customer_id = models.CharField(max_length=64, null=True, blank=True)

    class Meta:
        db_table = "salon_vouchers"
        ordering = ["voucher_id"]

    def __str__(self) -> str:
        return f"{self.code} ({self.status})"


class GiftCertificateRecord(models.Model):
    certificate_id = models.CharField(primary_key=True, max_length=64)
    code = models.CharField(max_length=32, unique=True)
    status = models.CharField(
        max_length=20,
        choices=RedemptionStatusChoice.choices,
        default=RedemptionStatusChoice.ACTIVE,
    )
    expires_on = models.DateField(null=True, blank=True)
    customer_id = models.CharField(max_length=64, null=True, blank=True)
    customer_name = models.CharField(max_length=255, default="", blank=True)

    class Meta:
        db_table = "salon_gift_certificates"
        ordering = ["certificate_id"]

    def __str__(self) -> str:
        return f"{self.code} ({self.status})"


class GiftCertificateLineRecord(models.Model):
    certificate = models.ForeignKey(
        GiftCertificateRecord,
        on_delete=models.PROTECT,
        related_name="lines",
        db_column="certificate_id",
    )
    kind = models.CharField(max_length=20, choices=SelectionKindChoice.choices)
    item_id = models.CharField(max_length=64)
    quantity = models.PositiveIntegerField(default=1)
    position = models.PositiveIntegerField()

    class Meta:
        db_table = "salon_gift_certificate_lines"
        ordering = ["certificate_id", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["certificate", "position"],
                name="uq_gc_line_position",
            ),
        ]


# ══════════════════════════════════════════════════════════════
# BOOKINGS & SERVICE INSTANCES
# ══════════════════════════════════════════════════════════════

class BookingRecord(models.Model):
    booking_id = models.CharField(primary_key=True, max_length=64)
    branch = models.CharField(max_length=20, choices=BranchChoice.choices)
    appointment_date = models.DateField()
    appointment_time = models.TimeField()
    status = models.CharField(
        max_length=20,
        choices=BookingStatusChoice.choices,
        default=BookingStatusChoice.PENDING,
    )
    grand_total = models.BigIntegerField()
    grand_discount = models.BigIntegerField(default=0)
    final_total = models.BigIntegerField(null=True, blank=True)
    duration_minutes = models.PositiveIntegerField(default=0)
    customer_id = models.CharField(max_length=64, null=True, blank=True)
    customer_name = models.CharField(max_length=255, default="", blank=True)
    notes = models.TextField(default="", blank=True)
    voucher = models.ForeignKey(
        VoucherRecord,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="bookings",
        db_column="voucher_id",
    )
    gift_certificate = models.ForeignKey(
        GiftCertificateRecord,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="bookings",
        db_column="gift_certificate_id",
    )
    created_at = models.DateTimeField()
    confirmed_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    commission_processed_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "salon_bookings"
        ordering = ["appointment_date", "appointment_time", "booking_id"]
        indexes = [
            models.Index(
                fields=["branch", "appointment_date"],
                name="idx_booking_branch_date",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.booking_id} ({self.status})"


class ServiceInstanceRecord(models.Model):
    instance_id = models.CharField(primary_key=True, max_length=64)
    booking = models.ForeignKey(
        BookingRecord,
        on_delete=models.PROTECT,
        related_name="instances",
        db_column="booking_id",
    )
    service = models.ForeignKey(
        ServiceRecord,
        on_delete=models.PROTECT,
        related_name="instances",
        db_column="service_id",
    )
    service_set_id = models.CharField(max_length=64, null=True, blank=True)
    price_at_booking = models.BigIntegerField()
    sequence_order = models.PositiveIntegerField()
    status = models.CharField(
        max_length=20,
        choices=InstanceStatusChoice.choices,
        default=InstanceStatusChoice.UNCLAIMED,
    )
    claimed_by = models.CharField(max_length=255, null=True, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    served_by = models.CharField(max_length=255, null=True, blank=True)
    served_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "salon_service_instances"
        ordering = ["booking_id", "sequence_order"]
        indexes = [
            models.Index(
                fields=["booking", "status"],
                name="idx_instance_booking_status",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["booking", "sequence_order"],
                name="uq_instance_booking_sequence",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.instance_id} ({self.status})"


# ══════════════════════════════════════════════════════════════
# COMMISSION
# ══════════════════════════════════════════════════════════════

class CommissionEntryRecord(models.Model):
    booking = models.ForeignKey(
        BookingRecord,
        on_delete=models.PROTECT,
        related_name="commissions",
        db_column="booking_id",
    )
    instance = models.ForeignKey(
        ServiceInstanceRecord,
        on_delete=models.PROTECT,
        related_name="commissions",
        db_column="instance_id",
    )
    employee_id = models.CharField(max_length=255)
    basis = models.BigIntegerField()
    rate = models.DecimalField(max_digits=5, decimal_places=2)
    amount = models.BigIntegerField()
    status = models.CharField(
        max_length=20,
        choices=CommissionStatusChoice.choices,
        default=CommissionStatusChoice.APPLIED,
    )
    created_at = models.DateTimeField()

    class Meta:
        db_table = "salon_commission_entries"
        ordering = ["booking_id", "id"]
        indexes = [
            models.Index(
                fields=["employee_id", "status"],
                name="idx_commission_emp_status",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.employee_id}:{self.instance_id}:{self.amount}"
