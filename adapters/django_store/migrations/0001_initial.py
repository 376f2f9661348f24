from django.db import migrations, models


BRANCH_CHOICES = [
    ("NAILS", "Nails"),
    ("SKIN", "Skin"),
    ("LASHES", "Lashes"),
    ("MASSAGE", "Massage"),
]

REDEMPTION_STATUS_CHOICES = [
    ("ACTIVE", "Active"),
    ("USED", "Used"),
    ("EXPIRED", "Expired"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ServiceRecord",
            fields=[
                ("service_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=255)),
                ("price", models.BigIntegerField()),
                ("duration_minutes", models.PositiveIntegerField(default=0)),
                ("branch", models.CharField(choices=BRANCH_CHOICES, max_length=20)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "salon_services",
                "ordering": ["service_id"],
            },
        ),
        migrations.CreateModel(
            name="ServiceSetRecord",
            fields=[
                ("service_set_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=255)),
                ("price", models.BigIntegerField()),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "salon_service_sets",
                "ordering": ["service_set_id"],
            },
        ),
        migrations.CreateModel(
            name="VoucherRecord",
            fields=[
                ("voucher_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("code", models.CharField(max_length=32, unique=True)),
                ("value", models.BigIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=REDEMPTION_STATUS_CHOICES,
                        default="ACTIVE",
                        max_length=20,
                    ),
                ),
                ("expires_on", models.DateField(blank=True, null=True)),
                ("customer_id", models.CharField(blank=True, max_length=64, null=True)),
            ],
            options={
                "db_table": "salon_vouchers",
                "ordering": ["voucher_id"],
            },
        ),
        migrations.CreateModel(
            name="GiftCertificateRecord",
            fields=[
                ("certificate_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("code", models.CharField(max_length=32, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=REDEMPTION_STATUS_CHOICES,
                        default="ACTIVE",
                        max_length=20,
                    ),
                ),
                ("expires_on", models.DateField(blank=True, null=True)),
                ("customer_id", models.CharField(blank=True, max_length=64, null=True)),
                ("customer_name", models.CharField(blank=True, default="", max_length=255)),
            ],
            options={
                "db_table": "salon_gift_certificates",
                "ordering": ["certificate_id"],
            },
        ),
        migrations.CreateModel(
            name="ServiceSetItemRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("adjusted_price", models.BigIntegerField(blank=True, null=True)),
                ("position", models.PositiveIntegerField()),
                (
                    "service_set",
                    models.ForeignKey(
                        db_column="service_set_id",
                        on_delete=models.PROTECT,
                        related_name="items",
                        to="salon_store.servicesetrecord",
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        db_column="service_id",
                        on_delete=models.PROTECT,
                        related_name="set_items",
                        to="salon_store.servicerecord",
                    ),
                ),
            ],
            options={
                "db_table": "salon_service_set_items",
                "ordering": ["service_set_id", "position"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("service_set", "position"),
                        name="uq_set_item_position",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="GiftCertificateLineRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[("SERVICE", "Service"), ("SERVICE_SET", "Service set")],
                        max_length=20,
                    ),
                ),
                ("item_id", models.CharField(max_length=64)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("position", models.PositiveIntegerField()),
                (
                    "certificate",
                    models.ForeignKey(
                        db_column="certificate_id",
                        on_delete=models.PROTECT,
                        related_name="lines",
                        to="salon_store.giftcertificaterecord",
                    ),
                ),
            ],
            options={
                "db_table": "salon_gift_certificate_lines",
                "ordering": ["certificate_id", "position"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("certificate", "position"),
                        name="uq_gc_line_position",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BookingRecord",
            fields=[
                ("booking_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("branch", models.CharField(choices=BRANCH_CHOICES, max_length=20)),
                ("appointment_date", models.DateField()),
                ("appointment_time", models.TimeField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("CONFIRMED", "Confirmed"),
                            ("IN_PROGRESS", "In progress"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                            ("NO_SHOW", "No show"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("grand_total", models.BigIntegerField()),
                ("grand_discount", models.BigIntegerField(default=0)),
                ("final_total", models.BigIntegerField(blank=True, null=True)),
                ("duration_minutes", models.PositiveIntegerField(default=0)),
                ("customer_id", models.CharField(blank=True, max_length=64, null=True)),
                ("customer_name", models.CharField(blank=True, default="", max_length=255)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField()),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("commission_processed_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=1)),
                (
                    "voucher",
                    models.ForeignKey(
                        blank=True,
                        db_column="voucher_id",
                        null=True,
                        on_delete=models.PROTECT,
                        related_name="bookings",
                        to="salon_store.voucherrecord",
                    ),
                ),
                (
                    "gift_certificate",
                    models.ForeignKey(
                        blank=True,
                        db_column="gift_certificate_id",
                        null=True,
                        on_delete=models.PROTECT,
                        related_name="bookings",
                        to="salon_store.giftcertificaterecord",
                    ),
                ),
            ],
            options={
                "db_table": "salon_bookings",
                "ordering": ["appointment_date", "appointment_time", "booking_id"],
                "indexes": [
                    models.Index(
                        fields=["branch", "appointment_date"],
                        name="idx_booking_branch_date",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ServiceInstanceRecord",
            fields=[
                ("instance_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("service_set_id", models.CharField(blank=True, max_length=64, null=True)),
                ("price_at_booking", models.BigIntegerField()),
                ("sequence_order", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("UNCLAIMED", "Unclaimed"),
                            ("CLAIMED", "Claimed"),
                            ("SERVED", "Served"),
                        ],
                        default="UNCLAIMED",
                        max_length=20,
                    ),
                ),
                ("claimed_by", models.CharField(blank=True, max_length=255, null=True)),
                ("claimed_at", models.DateTimeField(blank=True, null=True)),
                ("served_by", models.CharField(blank=True, max_length=255, null=True)),
                ("served_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=1)),
                (
                    "booking",
                    models.ForeignKey(
                        db_column="booking_id",
                        on_delete=models.PROTECT,
                        related_name="instances",
                        to="salon_store.bookingrecord",
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        db_column="service_id",
                        on_delete=models.PROTECT,
                        related_name="instances",
                        to="salon_store.servicerecord",
                    ),
                ),
            ],
            options={
                "db_table": "salon_service_instances",
                "ordering": ["booking_id", "sequence_order"],
                "indexes": [
                    models.Index(
                        fields=["booking", "status"],
                        name="idx_instance_booking_status",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("booking", "sequence_order"),
                        name="uq_instance_booking_sequence",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CommissionEntryRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("employee_id", models.CharField(max_length=255)),
                ("basis", models.BigIntegerField()),
                ("rate", models.DecimalField(decimal_places=2, max_digits=5)),
                ("amount", models.BigIntegerField()),
                (
                    "status",
                    models.CharField(
                        choices=[("APPLIED", "Applied"), ("REVERTED", "Reverted")],
                        default="APPLIED",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField()),
                (
                    "booking",
                    models.ForeignKey(
                        db_column="booking_id",
                        on_delete=models.PROTECT,
                        related_name="commissions",
                        to="salon_store.bookingrecord",
                    ),
                ),
                (
                    "instance",
                    models.ForeignKey(
                        db_column="instance_id",
                        on_delete=models.PROTECT,
                        related_name="commissions",
                        to="salon_store.serviceinstancerecord",
                    ),
                ),
            ],
            options={
                "db_table": "salon_commission_entries",
                "ordering": ["booking_id", "id"],
                "indexes": [
                    models.Index(
                        fields=["employee_id", "status"],
                        name="idx_commission_emp_status",
                    ),
                ],
            },
        ),
    ]
