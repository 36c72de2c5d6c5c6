# payments/services/bank.py

import logging
import random
import uuid
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BankTransferResult:
    success: bool
    transaction_id: Optional[str] = None
    error: str = ""


def generate_reference(prefix: str = "SETTLEMENT") -> str:
    """Generate unique transfer reference"""
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}_{int(timezone.now().timestamp())}"


class SimulatedBankTransfer:
    """
    Stand-in for a real bank payout API.

    Fails randomly with SETTLEMENT_BANK_FAILURE_RATE so the failure and retry
    paths get exercised outside of tests.
    """

    def __init__(self, failure_rate=None, rng=None):
        if failure_rate is None:
            failure_rate = getattr(settings, "SETTLEMENT_BANK_FAILURE_RATE", 0.1)
        self.failure_rate = float(failure_rate)
        self.rng = rng or random.Random()

    def transfer(self, amount: int, reference: str, memo: str = "") -> BankTransferResult:
        if self.rng.random() < self.failure_rate:
            logger.warning(f"Simulated bank transfer failed: ref={reference} amount={amount}")
            return BankTransferResult(success=False, error="Bank transfer rejected by receiving bank")

        transaction_id = f"BANK_{uuid.uuid4().hex[:16].upper()}"
        logger.info(f"Simulated bank transfer ok: ref={reference} amount={amount} txn={transaction_id} memo={memo}")
        return BankTransferResult(success=True, transaction_id=transaction_id)


def get_bank_transfer():
    backend = getattr(settings, "SETTLEMENT_BANK_BACKEND", "payments.services.bank.SimulatedBankTransfer")
    return import_string(backend)()
