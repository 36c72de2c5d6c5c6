from unittest import mock

from django.test import TestCase, override_settings

from payments.exceptions import AlreadySettled
from payments.models import CustomUser, Job, Payment, PaymentStatus, Settlement, SettlementStatus, Wallet
from payments.services.payments import PaymentService
from payments.services.settlements import SettlementService
from payments.services.wallet import WalletLedger

from .helpers import FakeBank, FakeGateway, fixed_clock, make_job, make_user


@override_settings(PAYMENT_FEE_RATE="0.05", PAYMENT_FEE_RATES_BY_ROLE={}, SETTLEMENT_DELAY_DAYS=3)
@mock.patch("payments.services.settlements.send_notification", mock.Mock())
class PaymentToSettlementTests(TestCase):
    """Payments confirmed through the lifecycle manager and settled by the scheduler."""

    def setUp(self):
        self.business = make_user("biz", role=CustomUser.ROLE_BUSINESS)
        self.worker = make_user("worker")
        self.ledger = WalletLedger(clock=fixed_clock)
        self.gateway = FakeGateway()
        self.bank = FakeBank()
        self.payments = PaymentService(
            gateway=self.gateway, ledger=self.ledger, notifier=mock.Mock(), clock=fixed_clock
        )
        self.settlements = SettlementService(
            ledger=self.ledger, bank=self.bank, notifier=mock.Mock(), clock=fixed_clock, max_workers=1
        )

        self.job1, self.payment1 = self.paid_job("Morning shift")
        self.job2, self.payment2 = self.paid_job("Evening shift")

    def paid_job(self, title, amount=20000):
        job = make_job(self.business, worker=self.worker, title=title)
        payment = self.payments.create_payment(
            job_id=job.id,
            worker_id=self.worker.id,
            business_id=self.business.id,
            amount=amount,
            order_name=title,
            customer_name="Kim",
            customer_email="kim@example.com",
        )
        self.payments.confirm_payment(f"pk_{job.id}", payment.order_id, amount)
        return job, Payment.objects.get(pk=payment.pk)

    def complete(self, job):
        job.status = Job.STATUS_COMPLETED
        with self.captureOnCommitCallbacks(execute=True):
            job.save()
        return Settlement.objects.get(job=job)

    def balances(self):
        wallet = Wallet.objects.get(user=self.worker)
        return wallet.pending_balance, wallet.withdrawable_balance

    def test_completed_job_settles_its_own_earnings(self):
        self.assertEqual(self.balances(), (38000, 0))
        settlement = self.complete(self.job1)
        self.assertEqual(settlement.net_amount, 19000)

        processed = self.settlements.process_settlement(settlement.id)

        self.assertEqual(processed.status, SettlementStatus.COMPLETED)
        self.assertEqual(self.balances(), (19000, 19000))
        self.assertTrue(self.ledger.verify_conservation(self.worker.id))

    def test_cancel_after_settlement_created_is_refused(self):
        settlement = self.complete(self.job1)

        with self.assertRaises(AlreadySettled):
            self.payments.cancel_payment(self.payment1.id, "customer request")

        processed = self.settlements.process_settlement(settlement.id)

        self.assertEqual(processed.status, SettlementStatus.COMPLETED)
        self.assertEqual(self.balances(), (19000, 19000))
        # the other job's earnings are still there to refund
        cancelled = self.payments.cancel_payment(self.payment2.id, "customer request")
        self.assertEqual(cancelled.status, PaymentStatus.CANCELLED)
        self.assertEqual(self.balances(), (0, 19000))
        self.assertTrue(self.ledger.verify_conservation(self.worker.id))

    def test_cancel_after_bank_failure_keeps_refund_out_of_withdrawable(self):
        self.bank.fail_calls = {1}
        settlement = self.complete(self.job1)
        self.settlements.process_settlement(settlement.id)

        self.payments.cancel_payment(self.payment1.id, "customer request")
        retried = self.settlements.retry_settlement(settlement.id)

        self.assertEqual(retried.status, SettlementStatus.FAILED)
        self.assertIn(self.payment1.order_id, retried.fail_reason)
        self.assertEqual(len(self.bank.transfers), 1)
        self.assertEqual(self.balances(), (19000, 0))
        self.assertTrue(self.ledger.verify_conservation(self.worker.id))
