from unittest import mock

from django.contrib.admin.sites import AdminSite
from django.test import RequestFactory, TestCase, override_settings

from payments.admin import LedgerEntryAdmin, SettlementAdmin
from payments.models import CustomUser, Job, LedgerEntry, Settlement, SettlementStatus
from payments.services.wallet import WalletLedger

from .helpers import make_completed_payment, make_job, make_user


@override_settings(SETTLEMENT_BANK_BACKEND="payments.tests.helpers.FakeBank")
class SettlementAdminTests(TestCase):
    def setUp(self):
        self.site = AdminSite()
        self.request = RequestFactory().get("/admin/")
        self.request.user = make_user("ops", role=CustomUser.ROLE_ADMIN, is_staff=True, is_superuser=True)

        business = make_user("biz", role=CustomUser.ROLE_BUSINESS)
        self.worker = make_user("worker")
        job = make_job(business, status=Job.STATUS_COMPLETED, worker=self.worker)
        payment = make_completed_payment(job, self.worker, business, 5000)
        WalletLedger().credit(self.worker.id, 5000, LedgerEntry.Bucket.PENDING, LedgerEntry.Type.PAYMENT)
        self.settlement = Settlement.objects.create(
            worker=self.worker, job=job, amount=5000, net_amount=5000,
            status=SettlementStatus.FAILED, scheduled_at=payment.created_at,
        )

    def test_retry_action(self):
        model_admin = SettlementAdmin(Settlement, self.site)

        with mock.patch.object(model_admin, "message_user") as message_user:
            model_admin.retry_selected(self.request, Settlement.objects.all())

        self.settlement.refresh_from_db()
        self.assertEqual(self.settlement.status, SettlementStatus.COMPLETED)
        self.assertIn("Retried 1", message_user.call_args.args[1])

    def test_process_action_reports_refusals(self):
        model_admin = SettlementAdmin(Settlement, self.site)

        with mock.patch.object(model_admin, "message_user") as message_user:
            model_admin.process_selected(self.request, Settlement.objects.all())

        # a FAILED settlement is not pending
        self.assertEqual(message_user.call_count, 2)
        self.assertIn("Processed 0", message_user.call_args.args[1])

    def test_ledger_is_read_only(self):
        model_admin = LedgerEntryAdmin(LedgerEntry, self.site)
        self.assertFalse(model_admin.has_add_permission(self.request))
        self.assertFalse(model_admin.has_change_permission(self.request))
        self.assertFalse(model_admin.has_delete_permission(self.request))
