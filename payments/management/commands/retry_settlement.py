# payments/management/commands/retry_settlement.py

from django.core.management.base import BaseCommand, CommandError

from payments.exceptions import PaymentError
from payments.models import SettlementStatus
from payments.services.settlements import SettlementService


class Command(BaseCommand):
    help = "Move a FAILED settlement back to PENDING and process it again."

    def add_arguments(self, parser):
        parser.add_argument("settlement_id", type=int)

    def handle(self, *args, **options):
        settlement_id = options["settlement_id"]
        try:
            settlement = SettlementService().retry_settlement(settlement_id)
        except PaymentError as e:
            raise CommandError(f"{e.code}: {e.message}")

        if settlement.status == SettlementStatus.COMPLETED:
            self.stdout.write(self.style.SUCCESS(
                f"Settlement #{settlement.id} completed (retry #{settlement.retry_count})."
            ))
        else:
            self.stderr.write(f"Settlement #{settlement.id} failed again: {settlement.fail_reason}")
