# payments/models.py

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .exceptions import InvalidPaymentState, InvalidSettlementState, LedgerImmutable


# Custom user model (extends AbstractUser)
class CustomUser(AbstractUser):
    ROLE_WORKER = 'worker'
    ROLE_BUSINESS = 'business'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = (
        (ROLE_WORKER, 'Worker'),
        (ROLE_BUSINESS, 'Business'),
        (ROLE_ADMIN, 'Admin'),
    )
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_WORKER)
    phone_number = models.CharField(max_length=15, blank=True, null=True)

    def __str__(self):
        return self.username


# --- JOB COLLABORATORS ---
# The matching domain lives elsewhere; settlements only need a job's
# completion status and the worker of its work session.

class Job(models.Model):
    STATUS_OPEN = 'open'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = (
        (STATUS_OPEN, 'Open'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    )

    title = models.CharField(max_length=200)
    business = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='posted_jobs',
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OPEN)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Job #{self.id} {self.title} ({self.status})"

    @property
    def is_completed(self) -> bool:
        return self.status == self.STATUS_COMPLETED


class WorkSession(models.Model):
    job = models.OneToOneField(Job, on_delete=models.CASCADE, related_name='work_session')
    worker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='work_sessions',
    )
    started_at = models.DateTimeField(default=timezone.now)
    ended_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"WorkSession for job #{self.job_id} by {self.worker}"


# --- WALLET & LEDGER ---

class Wallet(models.Model):
    """
    One wallet per user, created lazily on first access.

    ``pending_balance`` holds earned funds awaiting settlement,
    ``withdrawable_balance`` holds settled funds. ``balance`` mirrors their sum.
    All amounts are integer minor units. Only the wallet ledger service writes here.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='wallet',
    )
    balance = models.BigIntegerField(default=0)
    pending_balance = models.BigIntegerField(default=0)
    withdrawable_balance = models.BigIntegerField(default=0)
    total_earned = models.BigIntegerField(default=0)
    total_withdrawn = models.BigIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    last_updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(balance__gte=0), name='wallet_balance_non_negative'),
            models.CheckConstraint(condition=Q(pending_balance__gte=0), name='wallet_pending_non_negative'),
            models.CheckConstraint(
                condition=Q(withdrawable_balance__gte=0), name='wallet_withdrawable_non_negative'
            ),
            models.CheckConstraint(condition=Q(total_earned__gte=0), name='wallet_total_earned_non_negative'),
            models.CheckConstraint(
                condition=Q(total_withdrawn__gte=0), name='wallet_total_withdrawn_non_negative'
            ),
        ]

    def __str__(self):
        return f"Wallet of {self.user_id} (pending={self.pending_balance}, withdrawable={self.withdrawable_balance})"


class LedgerEntry(models.Model):
    """Append-only record of one balance-affecting event."""

    class Type(models.TextChoices):
        PAYMENT = 'PAYMENT', 'Payment'
        FEE = 'FEE', 'Fee'
        REFUND = 'REFUND', 'Refund'
        SETTLEMENT = 'SETTLEMENT', 'Settlement'

    class Bucket(models.TextChoices):
        PENDING = 'pending', 'Pending'
        WITHDRAWABLE = 'withdrawable', 'Withdrawable'
        NONE = 'none', 'None'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='ledger_entries',
    )
    type = models.CharField(max_length=12, choices=Type.choices)
    bucket = models.CharField(max_length=12, choices=Bucket.choices, default=Bucket.NONE)
    amount = models.BigIntegerField()
    description = models.CharField(max_length=255, blank=True, default='')
    reference_id = models.CharField(max_length=64, blank=True, default='')
    payment = models.ForeignKey(
        'Payment',
        on_delete=models.PROTECT,
        related_name='ledger_entries',
        null=True,
        blank=True,
    )
    settlement = models.ForeignKey(
        'Settlement',
        on_delete=models.PROTECT,
        related_name='ledger_entries',
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['user', 'type'], name='payments_le_user_type_idx'),
        ]
        verbose_name_plural = 'ledger entries'

    def __str__(self):
        return f"{self.type} {self.amount:+d} for user {self.user_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LedgerImmutable()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LedgerImmutable()


# --- PAYMENTS ---

class PaymentStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    COMPLETED = 'COMPLETED', 'Completed'
    FAILED = 'FAILED', 'Failed'
    CANCELLED = 'CANCELLED', 'Cancelled'
    PARTIAL_REFUNDED = 'PARTIAL_REFUNDED', 'Partially refunded'
    REFUNDED = 'REFUNDED', 'Refunded'


PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.CANCELLED, PaymentStatus.PARTIAL_REFUNDED},
    PaymentStatus.PARTIAL_REFUNDED: {PaymentStatus.PARTIAL_REFUNDED, PaymentStatus.CANCELLED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.CANCELLED: set(),
    PaymentStatus.REFUNDED: set(),
}

# States from which money can still be refunded
REFUNDABLE_PAYMENT_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.PARTIAL_REFUNDED)


class Payment(models.Model):
    Status = PaymentStatus

    order_id = models.CharField(max_length=64, unique=True)
    amount = models.BigIntegerField()
    fee_amount = models.BigIntegerField(default=0)
    net_amount = models.BigIntegerField()
    fee_rate = models.DecimalField(max_digits=6, decimal_places=4)
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    method = models.CharField(max_length=20, default='CARD')
    pg_provider = models.CharField(max_length=30, default='TOSS_PAYMENTS')
    payment_key = models.CharField(max_length=200, null=True, blank=True, db_index=True)
    pg_transaction_id = models.CharField(max_length=200, null=True, blank=True)

    job = models.ForeignKey(Job, on_delete=models.PROTECT, related_name='payments')
    worker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='earned_payments',
    )
    business = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='paid_payments',
    )

    order_name = models.CharField(max_length=200)
    customer_name = models.CharField(max_length=100)
    customer_email = models.EmailField()
    customer_mobile_phone = models.CharField(max_length=20, null=True, blank=True)

    approved_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    fail_reason = models.TextField(blank=True, default='')
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.CharField(max_length=200, blank=True, default='')
    cancel_amount = models.BigIntegerField(null=True, blank=True)
    refunded_amount = models.BigIntegerField(default=0)
    refunded_net_amount = models.BigIntegerField(default=0)
    receipt = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='payment_amount_positive'),
            models.CheckConstraint(condition=Q(fee_amount__gte=0), name='payment_fee_non_negative'),
            models.CheckConstraint(
                condition=Q(net_amount=F('amount') - F('fee_amount')), name='payment_net_is_amount_minus_fee'
            ),
            models.CheckConstraint(
                condition=Q(refunded_amount__gte=0) & Q(refunded_amount__lte=F('amount')),
                name='payment_refunded_within_amount',
            ),
        ]
        indexes = [
            models.Index(fields=['job', 'status'], name='payments_pay_job_status_idx'),
        ]

    def __str__(self):
        return f"Payment {self.order_id} {self.amount} ({self.status})"

    @property
    def remaining_amount(self) -> int:
        return self.amount - self.refunded_amount

    def can_transition_to(self, new_status) -> bool:
        return new_status in PAYMENT_TRANSITIONS[PaymentStatus(self.status)]

    def transition_to(self, new_status):
        if not self.can_transition_to(new_status):
            raise InvalidPaymentState(
                f"Payment {self.order_id} cannot move from {self.status} to {new_status}."
            )
        self.status = new_status


# --- SETTLEMENTS ---

class SettlementStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    PROCESSING = 'PROCESSING', 'Processing'
    COMPLETED = 'COMPLETED', 'Completed'
    FAILED = 'FAILED', 'Failed'


SETTLEMENT_TRANSITIONS = {
    SettlementStatus.PENDING: {SettlementStatus.PROCESSING},
    SettlementStatus.PROCESSING: {SettlementStatus.COMPLETED, SettlementStatus.FAILED},
    # only through an explicit retry
    SettlementStatus.FAILED: {SettlementStatus.PENDING},
    SettlementStatus.COMPLETED: set(),
}


class Settlement(models.Model):
    Status = SettlementStatus

    worker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='settlements',
    )
    job = models.ForeignKey(Job, on_delete=models.PROTECT, related_name='settlements')
    amount = models.BigIntegerField()
    fee_amount = models.BigIntegerField(default=0)
    net_amount = models.BigIntegerField()
    status = models.CharField(
        max_length=12, choices=SettlementStatus.choices, default=SettlementStatus.PENDING
    )
    scheduled_at = models.DateTimeField()
    processed_at = models.DateTimeField(null=True, blank=True)
    fail_reason = models.TextField(blank=True, default='')
    bank_transaction_id = models.CharField(max_length=100, null=True, blank=True)
    retry_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=Q(net_amount__gte=0), name='settlement_net_non_negative'),
        ]
        indexes = [
            models.Index(fields=['status', 'scheduled_at'], name='payments_stl_status_sched_idx'),
        ]

    def __str__(self):
        return f"Settlement #{self.id} for job #{self.job_id} ({self.status})"

    def can_transition_to(self, new_status) -> bool:
        return new_status in SETTLEMENT_TRANSITIONS[SettlementStatus(self.status)]

    def transition_to(self, new_status):
        if not self.can_transition_to(new_status):
            raise InvalidSettlementState(
                f"Settlement #{self.id} cannot move from {self.status} to {new_status}."
            )
        self.status = new_status


class SettlementItem(models.Model):
    settlement = models.ForeignKey(Settlement, on_delete=models.PROTECT, related_name='items')
    # one-to-one: a payment can be folded into at most one settlement
    payment = models.OneToOneField(Payment, on_delete=models.PROTECT, related_name='settlement_item')
    job = models.ForeignKey(Job, on_delete=models.PROTECT, related_name='settlement_items')
    amount = models.BigIntegerField()
    fee_amount = models.BigIntegerField(default=0)
    net_amount = models.BigIntegerField()

    def __str__(self):
        return f"Item payment={self.payment_id} in settlement #{self.settlement_id}"


# --- NOTIFICATIONS ---

class Notification(models.Model):
    TYPE_PAYMENT = 'PAYMENT'
    TYPE_SETTLEMENT = 'SETTLEMENT'

    TYPE_CHOICES = (
        (TYPE_PAYMENT, 'Payment'),
        (TYPE_SETTLEMENT, 'Settlement'),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    title = models.CharField(max_length=120)
    message = models.TextField()
    related_id = models.CharField(max_length=64, blank=True, default='')
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} - {self.title}"
