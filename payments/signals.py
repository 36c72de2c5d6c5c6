# payments/signals.py

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .exceptions import PaymentError
from .models import Job

logger = logging.getLogger(__name__)


def _settle_completed_job(job_id):
    from .services.settlements import SettlementService

    try:
        SettlementService().create_settlement(job_id)
    except PaymentError as e:
        logger.info(f"No settlement created for completed job {job_id}: {e.code} {e.message}")
    except Exception:
        logger.exception(f"Settlement creation for completed job {job_id} failed")


@receiver(post_save, sender=Job)
def schedule_settlement_on_completion(sender, instance: Job, created, **kwargs):
    if not instance.is_completed:
        return
    if instance.settlements.exists():
        return

    job_id = instance.pk
    transaction.on_commit(lambda: _settle_completed_job(job_id))
