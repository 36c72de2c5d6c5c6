from io import StringIO
from unittest import mock

from celery.schedules import crontab
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase, override_settings

from onetime_project.celery import setup_periodic_tasks
from payments.exceptions import NotFailed
from payments.services.settlements import BatchResult, SettlementService, WeeklyResult
from payments.tasks import create_weekly_settlements_task, process_due_settlements_task, retry_settlement_task

SERVICE = "payments.services.settlements.SettlementService"


class SettlementTaskTests(SimpleTestCase):
    @mock.patch(f"{SERVICE}.process_due_settlements")
    def test_daily_task_reports_batch(self, process_due):
        process_due.return_value = BatchResult(processed=3, completed=2, failed=1)

        result = process_due_settlements_task()

        self.assertEqual(result["processed"], 3)
        self.assertEqual(result["failed"], 1)

    @mock.patch(f"{SERVICE}.create_weekly_settlements")
    def test_weekly_task(self, create_weekly):
        create_weekly.return_value = WeeklyResult(candidates=4, created=3)

        result = create_weekly_settlements_task()

        self.assertEqual(result, {"candidates": 4, "created": 3, "failures": []})

    @mock.patch(f"{SERVICE}.retry_settlement", side_effect=NotFailed())
    def test_retry_task_reports_refusal(self, retry):
        result = retry_settlement_task(12)

        self.assertFalse(result["success"])
        self.assertEqual(result["error"]["code"], "NOT_FAILED")
        retry.assert_called_once_with(12)


@override_settings(SETTLEMENT_DAILY_CRON_HOUR=9, SETTLEMENT_WEEKLY_CRON_DAY=1, SETTLEMENT_WEEKLY_CRON_HOUR=10)
class PeriodicScheduleTests(SimpleTestCase):
    def test_daily_and_weekly_triggers_registered(self):
        sender = mock.Mock()

        setup_periodic_tasks(sender)

        names = [c.kwargs["name"] for c in sender.add_periodic_task.call_args_list]
        self.assertEqual(names, ["process-due-settlements-daily", "create-weekly-settlements"])
        daily_schedule = sender.add_periodic_task.call_args_list[0].args[0]
        self.assertEqual(daily_schedule, crontab(minute=0, hour=9))


class SettlementCommandTests(TestCase):
    @mock.patch(f"{SERVICE}.process_due_settlements")
    def test_process_due_settlements_command(self, process_due):
        process_due.return_value = BatchResult(
            processed=2, completed=1, failed=1, failures=[{"settlementId": 5, "error": "account frozen"}]
        )
        out, err = StringIO(), StringIO()

        call_command("process_due_settlements", "--workers", "1", stdout=out, stderr=err)

        self.assertIn("processed=2", out.getvalue())
        self.assertIn("Settlement #5 failed: account frozen", err.getvalue())

    def test_workers_option_reaches_service(self):
        command_service = "payments.management.commands.process_due_settlements.SettlementService"
        with mock.patch(command_service, wraps=SettlementService) as service_cls:
            call_command("process_due_settlements", "--workers", "2", stdout=StringIO())
        service_cls.assert_called_once_with(max_workers=2)

    @mock.patch(f"{SERVICE}.create_weekly_settlements")
    def test_create_weekly_settlements_command(self, create_weekly):
        create_weekly.return_value = WeeklyResult(candidates=1, created=1)
        out = StringIO()

        call_command("create_weekly_settlements", stdout=out)

        self.assertIn("created=1", out.getvalue())

    def test_retry_unknown_settlement(self):
        with self.assertRaises(CommandError):
            call_command("retry_settlement", "999999", stdout=StringIO())
