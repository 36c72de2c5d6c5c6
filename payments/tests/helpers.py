# payments/tests/helpers.py

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from payments.models import CustomUser, Job, Payment, PaymentStatus, WorkSession
from payments.services.bank import BankTransferResult
from payments.services.gateway import GatewayCancellation, GatewayConfirmation

FIXED_NOW = datetime(2025, 3, 10, 9, 0, tzinfo=dt_timezone.utc)


def fixed_clock():
    return FIXED_NOW


def make_user(username, role=CustomUser.ROLE_WORKER, **extra):
    return CustomUser.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="pass1234!",
        role=role,
        **extra,
    )


def make_job(business, status=Job.STATUS_IN_PROGRESS, worker=None, completed_at=None, title="Cafe shift"):
    job = Job.objects.create(title=title, business=business, status=status, completed_at=completed_at)
    if worker is not None:
        WorkSession.objects.create(job=job, worker=worker)
    return job


def make_completed_payment(job, worker, business, amount, fee_amount=0, fee_rate="0", order_id=None):
    """A COMPLETED payment row without wallet effects; callers credit the ledger themselves."""
    count = Payment.objects.count() + 1
    return Payment.objects.create(
        order_id=order_id or f"ORDER_TEST_{count}",
        amount=amount,
        fee_amount=fee_amount,
        net_amount=amount - fee_amount,
        fee_rate=Decimal(fee_rate),
        status=PaymentStatus.COMPLETED,
        payment_key=f"pk_test_{count}",
        job=job,
        worker=worker,
        business=business,
        order_name=job.title,
        customer_name="Kim",
        customer_email="kim@example.com",
        approved_at=FIXED_NOW,
        created_at=FIXED_NOW,
    )


class FakeGateway:
    """Records calls; raises the configured error instead of answering."""

    def __init__(self, confirm_error=None, cancel_error=None):
        self.confirm_error = confirm_error
        self.cancel_error = cancel_error
        self.confirmations = []
        self.cancellations = []

    def request_confirmation(self, payment_key, order_id, amount):
        self.confirmations.append((payment_key, order_id, amount))
        if self.confirm_error is not None:
            raise self.confirm_error
        return GatewayConfirmation(
            payment_key=payment_key,
            order_id=order_id,
            transaction_key=f"txn_{order_id}",
            approved_at=FIXED_NOW,
            method="CARD",
            raw={"paymentKey": payment_key, "orderId": order_id, "totalAmount": amount},
        )

    def request_cancellation(self, payment_key, cancel_reason, cancel_amount=None):
        self.cancellations.append((payment_key, cancel_reason, cancel_amount))
        if self.cancel_error is not None:
            raise self.cancel_error
        return GatewayCancellation(
            payment_key=payment_key,
            cancel_amount=cancel_amount,
            cancelled_at=FIXED_NOW,
            transaction_key=f"cancel_{len(self.cancellations)}",
        )


class FakeBank:
    """Succeeds unless the 1-based call number is listed in fail_calls / raise_calls."""

    def __init__(self, fail_calls=(), raise_calls=()):
        self.fail_calls = set(fail_calls)
        self.raise_calls = set(raise_calls)
        self.transfers = []

    def transfer(self, amount, reference, memo=""):
        self.transfers.append((amount, reference, memo))
        call_number = len(self.transfers)
        if call_number in self.raise_calls:
            raise ConnectionError("bank unreachable")
        if call_number in self.fail_calls:
            return BankTransferResult(success=False, error="account frozen")
        return BankTransferResult(success=True, transaction_id=f"BANK_{call_number}")
