# payments/management/commands/process_due_settlements.py

from django.core.management.base import BaseCommand

from payments.services.settlements import SettlementService


class Command(BaseCommand):
    help = "Process every PENDING settlement whose scheduled time has passed."

    def add_arguments(self, parser):
        parser.add_argument(
            "--workers",
            type=int,
            default=None,
            help="Parallel workers (defaults to SETTLEMENT_BATCH_CONCURRENCY).",
        )

    def handle(self, *args, **options):
        result = SettlementService(max_workers=options["workers"]).process_due_settlements()

        for failure in result.failures:
            self.stderr.write(f"Settlement #{failure['settlementId']} failed: {failure['error']}")

        self.stdout.write(self.style.SUCCESS(
            f"Due settlements processed. "
            f"processed={result.processed} "
            f"completed={result.completed} "
            f"failed={result.failed}"
        ))
