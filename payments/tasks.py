# payments/tasks.py

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def process_due_settlements_task():
    """
    Daily: process every PENDING settlement whose scheduled_at has passed.
    Failed items stay FAILED; nothing here retries them.
    """
    from payments.services.settlements import SettlementService

    result = SettlementService().process_due_settlements()
    logger.info(f"process_due_settlements_task: {result.as_dict()}")
    return result.as_dict()


@shared_task
def create_weekly_settlements_task():
    """Weekly: create settlements for recently completed jobs that have none."""
    from payments.services.settlements import SettlementService

    result = SettlementService().create_weekly_settlements()
    logger.info(f"create_weekly_settlements_task: {result.as_dict()}")
    return result.as_dict()


@shared_task
def retry_settlement_task(settlement_id: int):
    from payments.exceptions import PaymentError
    from payments.services.settlements import SettlementService

    try:
        settlement = SettlementService().retry_settlement(settlement_id)
    except PaymentError as e:
        logger.error(f"Retry of settlement {settlement_id} refused: {e.code} {e.message}")
        return {'success': False, 'error': e.as_dict()}

    return {
        'success': settlement.status == 'COMPLETED',
        'settlementId': settlement.id,
        'status': settlement.status,
    }
