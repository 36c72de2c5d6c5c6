from django.db import IntegrityError, transaction
from django.test import TestCase

from payments.exceptions import InsufficientBalance, InsufficientPendingBalance, InvalidAmount, LedgerImmutable
from payments.models import CustomUser, LedgerEntry, Wallet
from payments.services.wallet import WalletLedger

from .helpers import FIXED_NOW, fixed_clock, make_user

Bucket = LedgerEntry.Bucket
EntryType = LedgerEntry.Type


class WalletLedgerTests(TestCase):
    def setUp(self):
        self.worker = make_user("worker1")
        self.business = make_user("biz1", role=CustomUser.ROLE_BUSINESS)
        self.ledger = WalletLedger(clock=fixed_clock)

    def wallet(self):
        return Wallet.objects.get(user=self.worker)

    def test_wallet_is_created_lazily_once(self):
        first = self.ledger.get_or_create_wallet(self.worker.id)
        second = self.ledger.get_or_create_wallet(self.worker.id)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Wallet.objects.filter(user=self.worker).count(), 1)

    def test_credit_pending_payment(self):
        entry = self.ledger.credit(self.worker.id, 19000, Bucket.PENDING, EntryType.PAYMENT, reference_id="ORDER_1")

        wallet = self.wallet()
        self.assertEqual(wallet.pending_balance, 19000)
        self.assertEqual(wallet.withdrawable_balance, 0)
        self.assertEqual(wallet.balance, 19000)
        self.assertEqual(wallet.total_earned, 19000)
        self.assertEqual(wallet.last_updated_at, FIXED_NOW)
        self.assertEqual(entry.amount, 19000)
        self.assertEqual(entry.type, EntryType.PAYMENT)
        self.assertEqual(entry.reference_id, "ORDER_1")

    def test_debit_writes_negative_entry(self):
        self.ledger.credit(self.worker.id, 5000, Bucket.PENDING, EntryType.PAYMENT)
        entry = self.ledger.debit(self.worker.id, 2000, Bucket.PENDING, EntryType.REFUND)

        self.assertEqual(entry.amount, -2000)
        wallet = self.wallet()
        self.assertEqual(wallet.pending_balance, 3000)
        self.assertEqual(wallet.balance, 3000)
        # refunds do not reduce lifetime earnings
        self.assertEqual(wallet.total_earned, 5000)

    def test_debit_beyond_pending_is_refused_and_logged(self):
        self.ledger.credit(self.worker.id, 1000, Bucket.PENDING, EntryType.PAYMENT)

        with self.assertLogs("payments.services.wallet", level="ERROR") as logs:
            with self.assertRaises(InsufficientPendingBalance):
                self.ledger.debit(self.worker.id, 1001, Bucket.PENDING, EntryType.REFUND)

        self.assertIn("data-integrity", logs.output[0])
        self.assertEqual(self.wallet().pending_balance, 1000)
        self.assertEqual(LedgerEntry.objects.filter(user=self.worker).count(), 1)

    def test_debit_beyond_withdrawable_raises_insufficient_balance(self):
        with self.assertRaises(InsufficientBalance) as ctx:
            self.ledger.debit(self.worker.id, 1, Bucket.WITHDRAWABLE, EntryType.SETTLEMENT)
        self.assertNotIsInstance(ctx.exception, InsufficientPendingBalance)

    def test_amounts_must_be_positive_integers(self):
        for bad in (0, -5, 10.0, True):
            with self.assertRaises(InvalidAmount):
                self.ledger.credit(self.worker.id, bad, Bucket.PENDING, EntryType.PAYMENT)

    def test_transfer_pending_to_withdrawable(self):
        self.ledger.credit(self.worker.id, 10000, Bucket.PENDING, EntryType.PAYMENT)

        debit_entry, credit_entry = self.ledger.transfer(self.worker.id, 7000, reference_id="SETTLEMENT_1")

        wallet = self.wallet()
        self.assertEqual(wallet.pending_balance, 3000)
        self.assertEqual(wallet.withdrawable_balance, 7000)
        self.assertEqual(wallet.balance, 10000)
        self.assertEqual(wallet.total_earned, 10000)

        self.assertEqual((debit_entry.bucket, debit_entry.amount), (Bucket.PENDING, -7000))
        self.assertEqual((credit_entry.bucket, credit_entry.amount), (Bucket.WITHDRAWABLE, 7000))
        positive = LedgerEntry.objects.filter(user=self.worker, type=EntryType.SETTLEMENT, amount__gt=0)
        self.assertEqual(list(positive.values_list("amount", flat=True)), [7000])

    def test_failed_transfer_leaves_no_trace(self):
        self.ledger.credit(self.worker.id, 1000, Bucket.PENDING, EntryType.PAYMENT)

        with self.assertRaises(InsufficientPendingBalance):
            self.ledger.transfer(self.worker.id, 5000)

        wallet = self.wallet()
        self.assertEqual((wallet.pending_balance, wallet.withdrawable_balance), (1000, 0))
        self.assertFalse(LedgerEntry.objects.filter(type=EntryType.SETTLEMENT).exists())

    def test_transfer_needs_two_buckets(self):
        with self.assertRaises(ValueError):
            self.ledger.transfer(self.worker.id, 100, from_bucket=Bucket.PENDING, to_bucket=Bucket.PENDING)

    def test_fee_entry_touches_no_wallet(self):
        entry = self.ledger.record_fee(self.business.id, 1000, reference_id="ORDER_1")

        self.assertEqual(entry.type, EntryType.FEE)
        self.assertEqual(entry.bucket, Bucket.NONE)
        self.assertFalse(Wallet.objects.filter(user=self.business).exists())

    def test_conservation_after_mixed_operations(self):
        self.ledger.credit(self.worker.id, 19000, Bucket.PENDING, EntryType.PAYMENT)
        self.ledger.credit(self.worker.id, 4000, Bucket.PENDING, EntryType.PAYMENT)
        self.ledger.debit(self.worker.id, 2500, Bucket.PENDING, EntryType.REFUND)
        self.ledger.transfer(self.worker.id, 15000)
        self.ledger.record_fee(self.worker.id, 300)

        wallet = self.wallet()
        self.assertEqual(self.ledger.ledger_sum(self.worker.id), wallet.pending_balance + wallet.withdrawable_balance)
        self.assertTrue(self.ledger.verify_conservation(self.worker.id))

    def test_conservation_check_reports_drift(self):
        self.ledger.credit(self.worker.id, 1000, Bucket.PENDING, EntryType.PAYMENT)
        Wallet.objects.filter(user=self.worker).update(pending_balance=1500)

        with self.assertLogs("payments.services.wallet", level="ERROR"):
            self.assertFalse(self.ledger.verify_conservation(self.worker.id))

    def test_snapshot_of_new_wallet(self):
        snapshot = self.ledger.get_wallet_snapshot(self.worker.id)
        self.assertEqual(snapshot["userId"], self.worker.id)
        self.assertEqual(snapshot["pendingBalance"], 0)
        self.assertEqual(snapshot["withdrawableBalance"], 0)

    def test_ledger_entries_are_append_only(self):
        entry = self.ledger.credit(self.worker.id, 100, Bucket.PENDING, EntryType.PAYMENT)

        entry.amount = 1000000
        with self.assertRaises(LedgerImmutable):
            entry.save()
        with self.assertRaises(LedgerImmutable):
            entry.delete()
        self.assertEqual(LedgerEntry.objects.get(pk=entry.pk).amount, 100)

    def test_database_rejects_negative_balance(self):
        self.ledger.get_or_create_wallet(self.worker.id)
        with self.assertRaises(IntegrityError), transaction.atomic():
            Wallet.objects.filter(user=self.worker).update(pending_balance=-1)
