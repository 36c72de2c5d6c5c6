# payments/migrations/0001_initial.py

import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="CustomUser",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("role", models.CharField(choices=[("worker", "Worker"), ("business", "Business"), ("admin", "Admin")], default="worker", max_length=10)),
                ("phone_number", models.CharField(blank=True, max_length=15, null=True)),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "abstract": False,
            },
            managers=[
                ("objects", django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name="Job",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("status", models.CharField(choices=[("open", "Open"), ("in_progress", "In Progress"), ("completed", "Completed"), ("cancelled", "Cancelled")], default="open", max_length=20)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("business", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="posted_jobs", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="WorkSession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("started_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("ended_at", models.DateTimeField(blank=True, null=True)),
                ("job", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="work_session", to="payments.job")),
                ("worker", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="work_sessions", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="Wallet",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("balance", models.BigIntegerField(default=0)),
                ("pending_balance", models.BigIntegerField(default=0)),
                ("withdrawable_balance", models.BigIntegerField(default=0)),
                ("total_earned", models.BigIntegerField(default=0)),
                ("total_withdrawn", models.BigIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("last_updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="wallet", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("balance__gte", 0)), name="wallet_balance_non_negative"),
                    models.CheckConstraint(condition=models.Q(("pending_balance__gte", 0)), name="wallet_pending_non_negative"),
                    models.CheckConstraint(condition=models.Q(("withdrawable_balance__gte", 0)), name="wallet_withdrawable_non_negative"),
                    models.CheckConstraint(condition=models.Q(("total_earned__gte", 0)), name="wallet_total_earned_non_negative"),
                    models.CheckConstraint(condition=models.Q(("total_withdrawn__gte", 0)), name="wallet_total_withdrawn_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_id", models.CharField(max_length=64, unique=True)),
                ("amount", models.BigIntegerField()),
                ("fee_amount", models.BigIntegerField(default=0)),
                ("net_amount", models.BigIntegerField()),
                ("fee_rate", models.DecimalField(decimal_places=4, max_digits=6)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("COMPLETED", "Completed"), ("FAILED", "Failed"), ("CANCELLED", "Cancelled"), ("PARTIAL_REFUNDED", "Partially refunded"), ("REFUNDED", "Refunded")], default="PENDING", max_length=20)),
                ("method", models.CharField(default="CARD", max_length=20)),
                ("pg_provider", models.CharField(default="TOSS_PAYMENTS", max_length=30)),
                ("payment_key", models.CharField(blank=True, db_index=True, max_length=200, null=True)),
                ("pg_transaction_id", models.CharField(blank=True, max_length=200, null=True)),
                ("order_name", models.CharField(max_length=200)),
                ("customer_name", models.CharField(max_length=100)),
                ("customer_email", models.EmailField(max_length=254)),
                ("customer_mobile_phone", models.CharField(blank=True, max_length=20, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("fail_reason", models.TextField(blank=True, default="")),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.CharField(blank=True, default="", max_length=200)),
                ("cancel_amount", models.BigIntegerField(blank=True, null=True)),
                ("refunded_amount", models.BigIntegerField(default=0)),
                ("refunded_net_amount", models.BigIntegerField(default=0)),
                ("receipt", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("business", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="paid_payments", to=settings.AUTH_USER_MODEL)),
                ("job", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="payments.job")),
                ("worker", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="earned_payments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                    models.CheckConstraint(condition=models.Q(("fee_amount__gte", 0)), name="payment_fee_non_negative"),
                    models.CheckConstraint(condition=models.Q(("net_amount", models.F("amount") - models.F("fee_amount"))), name="payment_net_is_amount_minus_fee"),
                    models.CheckConstraint(condition=models.Q(("refunded_amount__gte", 0), ("refunded_amount__lte", models.F("amount"))), name="payment_refunded_within_amount"),
                ],
                "indexes": [
                    models.Index(fields=["job", "status"], name="payments_pay_job_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Settlement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.BigIntegerField()),
                ("fee_amount", models.BigIntegerField(default=0)),
                ("net_amount", models.BigIntegerField()),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("PROCESSING", "Processing"), ("COMPLETED", "Completed"), ("FAILED", "Failed")], default="PENDING", max_length=12)),
                ("scheduled_at", models.DateTimeField()),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("fail_reason", models.TextField(blank=True, default="")),
                ("bank_transaction_id", models.CharField(blank=True, max_length=100, null=True)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("job", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="settlements", to="payments.job")),
                ("worker", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="settlements", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("net_amount__gte", 0)), name="settlement_net_non_negative"),
                ],
                "indexes": [
                    models.Index(fields=["status", "scheduled_at"], name="payments_stl_status_sched_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SettlementItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.BigIntegerField()),
                ("fee_amount", models.BigIntegerField(default=0)),
                ("net_amount", models.BigIntegerField()),
                ("job", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="settlement_items", to="payments.job")),
                ("payment", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="settlement_item", to="payments.payment")),
                ("settlement", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="items", to="payments.settlement")),
            ],
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=[("PAYMENT", "Payment"), ("FEE", "Fee"), ("REFUND", "Refund"), ("SETTLEMENT", "Settlement")], max_length=12)),
                ("bucket", models.CharField(choices=[("pending", "Pending"), ("withdrawable", "Withdrawable"), ("none", "None")], default="none", max_length=12)),
                ("amount", models.BigIntegerField()),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("reference_id", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="payments.payment")),
                ("settlement", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="payments.settlement")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name_plural": "ledger entries",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["user", "type"], name="payments_le_user_type_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=[("PAYMENT", "Payment"), ("SETTLEMENT", "Settlement")], max_length=20)),
                ("title", models.CharField(max_length=120)),
                ("message", models.TextField()),
                ("related_id", models.CharField(blank=True, default="", max_length=64)),
                ("read", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to=settings.AUTH_USER_MODEL)),
            ],
        ),
    ]
