# payments/management/commands/create_weekly_settlements.py

from django.core.management.base import BaseCommand

from payments.services.settlements import SettlementService


class Command(BaseCommand):
    help = "Create settlements for jobs completed in the trailing window that have none yet."

    def handle(self, *args, **options):
        result = SettlementService().create_weekly_settlements()

        for failure in result.failures:
            self.stderr.write(f"Job {failure['jobId']} skipped: {failure['error']}")

        self.stdout.write(self.style.SUCCESS(
            f"Weekly settlements created. candidates={result.candidates} created={result.created}"
        ))
