# payments/services/payments.py

"""
Payment lifecycle: create -> confirm (or fail) -> cancel / partially refund.

Every state change and its wallet effect happen in one ``transaction.atomic()``
block. Confirm and cancel of the same payment are serialized with a short cache
lock plus ``select_for_update`` and a status re-check on the locked row.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from payments.exceptions import (
    AlreadySettled,
    AmountMismatch,
    CancelAmountExceedsRemaining,
    GatewayRejected,
    InvalidAmount,
    InvalidPaymentState,
    JobNotFound,
    NotCompletedYet,
    PaymentLocked,
    PaymentNotFound,
    UserNotFound,
)
from payments.models import (
    REFUNDABLE_PAYMENT_STATUSES,
    Job,
    LedgerEntry,
    Notification,
    Payment,
    PaymentStatus,
    SettlementItem,
    SettlementStatus,
)
from payments.services.fees import compute_fee
from payments.services.gateway import get_gateway
from payments.services.wallet import WalletLedger
from payments.utils.notifications import send_notification
from payments.utils.paging import paginate, period_start

logger = logging.getLogger(__name__)


@contextmanager
def payment_lock(payment_id):
    lock_key = f"payment_lock_{payment_id}"
    timeout = getattr(settings, "PAYMENT_LOCK_TIMEOUT", 30)

    if not cache.add(lock_key, "locked", timeout=timeout):
        raise PaymentLocked(payment_id=payment_id)
    try:
        yield
    finally:
        cache.delete(lock_key)


def generate_order_id(now) -> str:
    return f"ORDER_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:6].upper()}"


class PaymentService:
    def __init__(self, gateway=None, ledger=None, notifier=None, clock=None):
        self._gateway = gateway
        self.clock = clock or timezone.now
        self.ledger = ledger or WalletLedger(clock=self.clock)
        self.notifier = notifier or send_notification

    @property
    def gateway(self):
        # built lazily so read-only callers never need gateway credentials
        if self._gateway is None:
            self._gateway = get_gateway()
        return self._gateway

    # ---------- notifications ----------

    def _safe_notify(self, user_id, title, message, related_id):
        try:
            self.notifier(user_id, Notification.TYPE_PAYMENT, title, message, related_id)
        except Exception:
            logger.exception(f"Payment notification to user {user_id} failed")

    def _notify_after_commit(self, user_id, title, message, related_id):
        transaction.on_commit(lambda: self._safe_notify(user_id, title, message, related_id))

    # ---------- create ----------

    def create_payment(self, *, job_id, worker_id, business_id, amount, order_name,
                       customer_name, customer_email, customer_mobile_phone=None) -> Payment:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"Payment amount must be a positive integer, got {amount!r}")

        if not Job.objects.filter(pk=job_id).exists():
            raise JobNotFound(job_id=job_id)

        User = get_user_model()
        users = {u.pk: u for u in User.objects.filter(pk__in=[worker_id, business_id])}
        if worker_id not in users or business_id not in users:
            raise UserNotFound(worker_id=worker_id, business_id=business_id)

        fee = compute_fee(amount, payer_role=users[business_id].role)
        now = self.clock()
        payment = Payment.objects.create(
            order_id=generate_order_id(now),
            amount=amount,
            fee_amount=fee.fee_amount,
            net_amount=fee.net_amount,
            fee_rate=fee.fee_rate,
            status=PaymentStatus.PENDING,
            job_id=job_id,
            worker_id=worker_id,
            business_id=business_id,
            order_name=order_name,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_mobile_phone=customer_mobile_phone,
            created_at=now,
        )
        logger.info(
            f"Payment created: order={payment.order_id} job={job_id} amount={amount} "
            f"fee={fee.fee_amount} net={fee.net_amount}"
        )
        return payment

    # ---------- confirm ----------

    def confirm_payment(self, payment_key, order_id, amount) -> Payment:
        payment = Payment.objects.filter(order_id=order_id).first()
        if payment is None:
            raise PaymentNotFound(order_id=order_id)

        if payment.amount != amount:
            logger.warning(f"Confirm amount mismatch: order={order_id} expected={payment.amount} got={amount}")
            raise AmountMismatch(
                f"Payment {order_id} is for {payment.amount}, confirmation asked for {amount}."
            )
        if payment.status != PaymentStatus.PENDING:
            raise InvalidPaymentState(f"Payment {order_id} is {payment.status}, not PENDING.")

        with payment_lock(payment.pk):
            try:
                with transaction.atomic():
                    payment = Payment.objects.select_for_update().get(pk=payment.pk)
                    if payment.status != PaymentStatus.PENDING:
                        raise InvalidPaymentState(f"Payment {order_id} is {payment.status}, not PENDING.")

                    confirmation = self.gateway.request_confirmation(payment_key, order_id, amount)
                    self._complete(payment, confirmation)
            except GatewayRejected as e:
                self._mark_failed(payment.pk, payment_key, e)
                raise

        return payment

    def _complete(self, payment, confirmation):
        payment.transition_to(PaymentStatus.COMPLETED)
        payment.payment_key = confirmation.payment_key
        payment.pg_transaction_id = confirmation.transaction_key
        payment.approved_at = confirmation.approved_at
        if confirmation.method:
            payment.method = confirmation.method
        payment.receipt = confirmation.raw or None
        payment.save()

        self.ledger.credit(
            payment.worker_id,
            payment.net_amount,
            LedgerEntry.Bucket.PENDING,
            LedgerEntry.Type.PAYMENT,
            reference_id=payment.order_id,
            description=f"Payment for {payment.order_name}",
            payment=payment,
        )
        if payment.fee_amount > 0:
            self.ledger.record_fee(
                payment.business_id,
                payment.fee_amount,
                reference_id=payment.order_id,
                description=f"Platform fee for {payment.order_name}",
                payment=payment,
            )

        logger.info(
            f"Payment {payment.order_id} COMPLETED: worker={payment.worker_id} "
            f"net={payment.net_amount} fee={payment.fee_amount}"
        )
        self._notify_after_commit(
            payment.worker_id,
            "Payment completed",
            f"{payment.net_amount} has been added to your pending balance for {payment.order_name}.",
            payment.id,
        )

    def _mark_failed(self, payment_pk, payment_key, error):
        with transaction.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment_pk)
            if not payment.can_transition_to(PaymentStatus.FAILED):
                return payment
            payment.transition_to(PaymentStatus.FAILED)
            payment.payment_key = payment_key
            payment.failed_at = self.clock()
            payment.fail_reason = error.message
            payment.save()

        logger.warning(f"Payment {payment.order_id} FAILED: {error.code} {error.message}")
        return payment

    # ---------- cancel ----------

    def _resolve_cancel(self, payment, cancel_amount):
        """Return (cancel amount, net amount to take back from the worker)."""
        if payment.status not in REFUNDABLE_PAYMENT_STATUSES:
            raise NotCompletedYet(f"Payment {payment.order_id} is {payment.status}.")

        # only a settlement that failed before the bank paid out releases its payments
        item = SettlementItem.objects.filter(payment_id=payment.pk).select_related("settlement").first()
        if item is not None and (
            item.settlement.status != SettlementStatus.FAILED or item.settlement.bank_transaction_id
        ):
            raise AlreadySettled(
                f"Payment {payment.order_id} belongs to settlement #{item.settlement_id} "
                f"({item.settlement.status}).",
                settlement_id=item.settlement_id,
            )

        remaining = payment.remaining_amount
        amount = remaining if cancel_amount is None else cancel_amount
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"Cancel amount must be a positive integer, got {amount!r}")
        if amount > remaining:
            raise CancelAmountExceedsRemaining(
                f"Cancel amount {amount} exceeds the remaining {remaining}.",
                remaining=remaining,
            )

        remaining_net = payment.net_amount - payment.refunded_net_amount
        if amount == remaining:
            # final cancellation reverses exactly what is left of the credit
            refund_net = remaining_net
        else:
            refund_net = min(compute_fee(amount, fee_rate=payment.fee_rate).net_amount, remaining_net)
        return amount, refund_net

    def cancel_payment(self, payment_id, cancel_reason, cancel_amount=None) -> Payment:
        payment = self.get_payment(payment_id)
        self._resolve_cancel(payment, cancel_amount)

        with payment_lock(payment.pk):
            with transaction.atomic():
                payment = Payment.objects.select_for_update().get(pk=payment.pk)
                amount, refund_net = self._resolve_cancel(payment, cancel_amount)

                if refund_net > 0:
                    self.ledger.debit(
                        payment.worker_id,
                        refund_net,
                        LedgerEntry.Bucket.PENDING,
                        LedgerEntry.Type.REFUND,
                        reference_id=payment.order_id,
                        description=f"Refund: {cancel_reason}",
                        payment=payment,
                    )

                payment.refunded_amount += amount
                payment.refunded_net_amount += refund_net
                payment.cancel_amount = amount
                payment.cancel_reason = cancel_reason[:200]
                payment.cancelled_at = self.clock()
                if payment.refunded_amount == payment.amount:
                    payment.transition_to(PaymentStatus.CANCELLED)
                else:
                    payment.transition_to(PaymentStatus.PARTIAL_REFUNDED)
                payment.save()

                # last step: a rejection here rolls back the debit and the payment fields
                self.gateway.request_cancellation(payment.payment_key, cancel_reason, amount)

                logger.info(
                    f"Payment {payment.order_id} {payment.status}: cancel={amount} "
                    f"refund_net={refund_net} refunded_total={payment.refunded_amount}"
                )
                self._notify_after_commit(
                    payment.worker_id,
                    "Payment cancelled",
                    f"{amount} of payment {payment.order_id} was cancelled: {cancel_reason}",
                    payment.id,
                )

        return payment

    # ---------- queries ----------

    def get_payment(self, payment_id) -> Payment:
        try:
            return Payment.objects.get(pk=payment_id)
        except (Payment.DoesNotExist, ValueError, TypeError):
            raise PaymentNotFound(payment_id=payment_id)

    def get_payment_status(self, key_or_order_id) -> Payment:
        payment = Payment.objects.filter(
            Q(payment_key=key_or_order_id) | Q(order_id=key_or_order_id)
        ).first()
        if payment is None:
            raise PaymentNotFound(key=key_or_order_id)
        return payment

    def get_payment_history(self, user_id, page=1, limit=20, status=None, method=None) -> dict:
        qs = Payment.objects.filter(Q(worker_id=user_id) | Q(business_id=user_id)).select_related("job")
        if status:
            qs = qs.filter(status=status)
        if method:
            qs = qs.filter(method=method)

        payments, pagination = paginate(qs.order_by("-created_at", "-id"), page, limit)
        return {"payments": payments, "pagination": pagination}

    def get_payment_stats(self, user_id, period="30d") -> dict:
        now = self.clock()
        start = period_start(period, now)
        stats = Payment.objects.filter(
            worker_id=user_id,
            status=PaymentStatus.COMPLETED,
            created_at__gte=start,
            created_at__lte=now,
        ).aggregate(
            count=Count("id"),
            amount=Sum("amount"),
            net=Sum("net_amount"),
            fees=Sum("fee_amount"),
        )
        return {
            "period": period,
            "totalPayments": stats["count"] or 0,
            "totalAmount": stats["amount"] or 0,
            "totalNetAmount": stats["net"] or 0,
            "totalFees": stats["fees"] or 0,
        }

    def preview_fee(self, amount, payer_role=None) -> dict:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")
        return compute_fee(amount, payer_role=payer_role).as_dict()
