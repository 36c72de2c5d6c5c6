# payments/services/settlements.py

"""
Settlement scheduler.

A settlement groups a job's completed, not-yet-settled payments. After a delay
it is processed: the bank transfer adapter pays out the net amount and the
worker's funds move from pending to withdrawable. A failed settlement stays
FAILED until someone calls ``retry_settlement``.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from django.conf import settings
from django.db import IntegrityError, connection, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from payments.exceptions import (
    AlreadySettled,
    InsufficientBalance,
    JobNotCompleted,
    NoCompletedPayments,
    NotFailed,
    NotPending,
    NoWorkSession,
    SettlementNotFound,
)
from payments.models import (
    Job,
    LedgerEntry,
    Notification,
    Payment,
    PaymentStatus,
    Settlement,
    SettlementItem,
    SettlementStatus,
    WorkSession,
)
from payments.services.bank import BankTransferResult, generate_reference, get_bank_transfer
from payments.services.wallet import WalletLedger
from payments.utils.notifications import send_notification
from payments.utils.paging import paginate, period_start

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    processed: int = 0
    completed: int = 0
    failed: int = 0
    failures: List[dict] = field(default_factory=list)

    def as_dict(self):
        return {
            "processed": self.processed,
            "completed": self.completed,
            "failed": self.failed,
            "failures": self.failures,
        }


@dataclass
class WeeklyResult:
    candidates: int = 0
    created: int = 0
    failures: List[dict] = field(default_factory=list)

    def as_dict(self):
        return {
            "candidates": self.candidates,
            "created": self.created,
            "failures": self.failures,
        }


class SettlementService:
    def __init__(self, ledger=None, bank=None, notifier=None, clock=None, max_workers=None):
        self.clock = clock or timezone.now
        self.ledger = ledger or WalletLedger(clock=self.clock)
        self._bank = bank
        self.notifier = notifier or send_notification
        if max_workers is None:
            max_workers = getattr(settings, "SETTLEMENT_BATCH_CONCURRENCY", 4)
        self.max_workers = max(1, int(max_workers))

    @property
    def bank(self):
        if self._bank is None:
            self._bank = get_bank_transfer()
        return self._bank

    def _safe_notify(self, user_id, title, message, related_id):
        try:
            self.notifier(user_id, Notification.TYPE_SETTLEMENT, title, message, related_id)
        except Exception:
            logger.exception(f"Settlement notification to user {user_id} failed")

    def _notify_after_commit(self, user_id, title, message, related_id):
        transaction.on_commit(lambda: self._safe_notify(user_id, title, message, related_id))

    def _get(self, settlement_id, lock=False) -> Settlement:
        qs = Settlement.objects.select_for_update() if lock else Settlement.objects
        try:
            return qs.get(pk=settlement_id)
        except (Settlement.DoesNotExist, ValueError, TypeError):
            raise SettlementNotFound(settlement_id=settlement_id)

    # ---------- create ----------

    def create_settlement(self, job_id) -> Settlement:
        job = Job.objects.filter(pk=job_id).first()
        if job is None or not job.is_completed:
            raise JobNotCompleted(f"Job {job_id} is missing or not completed.", job_id=job_id)

        try:
            worker_id = job.work_session.worker_id
        except WorkSession.DoesNotExist:
            raise NoWorkSession(f"Job {job_id} has no work session.", job_id=job_id)

        with transaction.atomic():
            payments = list(
                Payment.objects.select_for_update()
                .filter(
                    job_id=job_id,
                    worker_id=worker_id,
                    status=PaymentStatus.COMPLETED,
                    settlement_item__isnull=True,
                )
                .order_by("id")
            )
            if not payments:
                raise NoCompletedPayments(f"Job {job_id} has no completed payments to settle.", job_id=job_id)

            now = self.clock()
            delay_days = getattr(settings, "SETTLEMENT_DELAY_DAYS", 3)
            settlement = Settlement.objects.create(
                worker_id=worker_id,
                job_id=job_id,
                amount=sum(p.amount for p in payments),
                fee_amount=sum(p.fee_amount for p in payments),
                net_amount=sum(p.net_amount for p in payments),
                status=SettlementStatus.PENDING,
                scheduled_at=now + timedelta(days=delay_days),
                created_at=now,
            )

            try:
                # unique payment column: a concurrent run settling the same payment fails here
                with transaction.atomic():
                    SettlementItem.objects.bulk_create([
                        SettlementItem(
                            settlement=settlement,
                            payment=p,
                            job_id=job_id,
                            amount=p.amount,
                            fee_amount=p.fee_amount,
                            net_amount=p.net_amount,
                        )
                        for p in payments
                    ])
            except IntegrityError:
                raise AlreadySettled(f"A payment of job {job_id} is already in a settlement.", job_id=job_id)

            logger.info(
                f"Settlement #{settlement.id} created: job={job_id} worker={worker_id} "
                f"payments={len(payments)} net={settlement.net_amount} scheduled_at={settlement.scheduled_at}"
            )
            self._notify_after_commit(
                worker_id,
                "Settlement scheduled",
                f"{settlement.net_amount} will be settled on {settlement.scheduled_at:%Y-%m-%d}.",
                settlement.id,
            )

        return settlement

    # ---------- process ----------

    def process_settlement(self, settlement_id) -> Settlement:
        with transaction.atomic():
            settlement = self._get(settlement_id, lock=True)
            if settlement.status != SettlementStatus.PENDING:
                raise NotPending(f"Settlement #{settlement_id} is {settlement.status}.")
            settlement.transition_to(SettlementStatus.PROCESSING)
            settlement.save(update_fields=["status", "updated_at"])

            # locks the item payments so a cancel cannot slip in before the transfer
            stale = [
                p.order_id
                for p in Payment.objects.select_for_update().filter(settlement_item__settlement=settlement)
                if p.status != PaymentStatus.COMPLETED
            ]

        if stale:
            return self._mark_failed(
                settlement.id, f"Payments no longer completed: {', '.join(sorted(stale))}"
            )

        logger.info(f"Settlement #{settlement.id} PROCESSING: net={settlement.net_amount}")

        reference = generate_reference()
        if settlement.bank_transaction_id:
            # the bank already paid this settlement; only the wallet move is left
            logger.info(
                f"Settlement #{settlement.id} reuses bank transfer {settlement.bank_transaction_id}"
            )
            result = BankTransferResult(success=True, transaction_id=settlement.bank_transaction_id)
        else:
            try:
                result = self.bank.transfer(
                    settlement.net_amount,
                    reference,
                    memo=f"Settlement #{settlement.id} job #{settlement.job_id}",
                )
            except Exception as e:
                logger.exception(f"Bank transfer for settlement #{settlement.id} raised")
                result = BankTransferResult(success=False, error=str(e) or e.__class__.__name__)

        if not result.success:
            return self._mark_failed(settlement.id, result.error or "Bank transfer failed")

        try:
            with transaction.atomic():
                settlement = self._get(settlement.id, lock=True)
                settlement.transition_to(SettlementStatus.COMPLETED)
                settlement.processed_at = self.clock()
                settlement.bank_transaction_id = result.transaction_id
                settlement.save()

                if settlement.net_amount > 0:
                    self.ledger.transfer(
                        settlement.worker_id,
                        settlement.net_amount,
                        from_bucket=LedgerEntry.Bucket.PENDING,
                        to_bucket=LedgerEntry.Bucket.WITHDRAWABLE,
                        reference_id=reference,
                        description=f"Settlement #{settlement.id}",
                        settlement=settlement,
                    )

                self._notify_after_commit(
                    settlement.worker_id,
                    "Settlement completed",
                    f"{settlement.net_amount} is now available to withdraw.",
                    settlement.id,
                )
        except InsufficientBalance as e:
            # the bank already paid out; the wallet disagrees, so leave it for an operator
            logger.error(
                f"data-integrity: settlement #{settlement.id} paid by bank ({result.transaction_id}) "
                f"but the wallet transfer failed: {e.message}"
            )
            return self._mark_failed(settlement.id, e.message, bank_transaction_id=result.transaction_id)

        logger.info(
            f"Settlement #{settlement.id} COMPLETED: worker={settlement.worker_id} "
            f"net={settlement.net_amount} bank_txn={settlement.bank_transaction_id}"
        )
        return settlement

    def _mark_failed(self, settlement_id, reason, bank_transaction_id=None) -> Settlement:
        with transaction.atomic():
            settlement = self._get(settlement_id, lock=True)
            settlement.transition_to(SettlementStatus.FAILED)
            settlement.fail_reason = reason
            if bank_transaction_id:
                settlement.bank_transaction_id = bank_transaction_id
            settlement.processed_at = self.clock()
            settlement.save()

            self._notify_after_commit(
                settlement.worker_id,
                "Settlement failed",
                f"Settlement #{settlement.id} could not be completed: {reason}",
                settlement.id,
            )

        logger.warning(f"Settlement #{settlement.id} FAILED: {reason}")
        return settlement

    # ---------- batches ----------

    def _process_one(self, settlement_id):
        try:
            return self.process_settlement(settlement_id)
        finally:
            if self.max_workers > 1:
                # worker threads own their connection
                connection.close()

    def process_due_settlements(self) -> BatchResult:
        now = self.clock()
        due_ids = list(
            Settlement.objects.filter(status=SettlementStatus.PENDING, scheduled_at__lte=now)
            .order_by("scheduled_at", "id")
            .values_list("id", flat=True)
        )
        result = BatchResult()
        if not due_ids:
            logger.info("No due settlements")
            return result

        logger.info(f"Processing {len(due_ids)} due settlements with {self.max_workers} worker(s)")

        def record(settlement_id, settlement=None, error=None):
            result.processed += 1
            if error is not None:
                result.failed += 1
                result.failures.append({"settlementId": settlement_id, "error": str(error)})
            elif settlement.status == SettlementStatus.COMPLETED:
                result.completed += 1
            else:
                result.failed += 1
                result.failures.append({"settlementId": settlement_id, "error": settlement.fail_reason})

        if self.max_workers <= 1:
            for settlement_id in due_ids:
                try:
                    record(settlement_id, settlement=self.process_settlement(settlement_id))
                except Exception as e:
                    logger.exception(f"Settlement #{settlement_id} could not be processed")
                    record(settlement_id, error=e)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [(sid, pool.submit(self._process_one, sid)) for sid in due_ids]
                for settlement_id, future in futures:
                    try:
                        record(settlement_id, settlement=future.result())
                    except Exception as e:
                        logger.exception(f"Settlement #{settlement_id} could not be processed")
                        record(settlement_id, error=e)

        logger.info(
            f"Due settlements done: processed={result.processed} "
            f"completed={result.completed} failed={result.failed}"
        )
        return result

    def create_weekly_settlements(self) -> WeeklyResult:
        now = self.clock()
        window_start = now - timedelta(days=getattr(settings, "SETTLEMENT_WEEKLY_WINDOW_DAYS", 7))

        job_ids = list(
            Job.objects.filter(status=Job.STATUS_COMPLETED, settlements__isnull=True)
            .filter(
                Q(completed_at__gte=window_start, completed_at__lte=now)
                | Q(completed_at__isnull=True, updated_at__gte=window_start, updated_at__lte=now)
            )
            .order_by("id")
            .values_list("id", flat=True)
            .distinct()
        )

        result = WeeklyResult(candidates=len(job_ids))
        for job_id in job_ids:
            try:
                self.create_settlement(job_id)
                result.created += 1
            except Exception as e:
                logger.warning(f"Weekly settlement skipped job {job_id}: {e}")
                result.failures.append({"jobId": job_id, "error": str(e)})

        logger.info(f"Weekly settlements: candidates={result.candidates} created={result.created}")
        return result

    def retry_settlement(self, settlement_id) -> Settlement:
        with transaction.atomic():
            settlement = self._get(settlement_id, lock=True)
            if settlement.status != SettlementStatus.FAILED:
                raise NotFailed(f"Settlement #{settlement_id} is {settlement.status}.")
            settlement.transition_to(SettlementStatus.PENDING)
            settlement.fail_reason = ""
            settlement.retry_count += 1
            settlement.save()

        logger.info(f"Settlement #{settlement_id} retry #{settlement.retry_count}")
        return self.process_settlement(settlement_id)

    # ---------- queries ----------

    def get_settlement_history(self, worker_id, page=1, limit=20, status=None) -> dict:
        qs = Settlement.objects.filter(worker_id=worker_id).select_related("job").prefetch_related("items")
        if status:
            qs = qs.filter(status=status)
        settlements, pagination = paginate(qs.order_by("-created_at", "-id"), page, limit)
        return {"settlements": settlements, "pagination": pagination}

    def get_settlement_stats(self, worker_id, period="30d") -> dict:
        now = self.clock()
        start = period_start(period, now)
        stats = Settlement.objects.filter(
            worker_id=worker_id,
            status=SettlementStatus.COMPLETED,
            created_at__gte=start,
            created_at__lte=now,
        ).aggregate(
            count=Count("id"),
            amount=Sum("amount"),
            net=Sum("net_amount"),
            fees=Sum("fee_amount"),
        )
        return {
            "period": period,
            "totalSettlements": stats["count"] or 0,
            "totalAmount": stats["amount"] or 0,
            "totalNetAmount": stats["net"] or 0,
            "totalFees": stats["fees"] or 0,
        }

    def list_settlements(self, status=None, page=1, limit=20) -> dict:
        qs = Settlement.objects.select_related("job", "worker")
        if status:
            qs = qs.filter(status=status)
        settlements, pagination = paginate(qs.order_by("-created_at", "-id"), page, limit)
        return {"settlements": settlements, "pagination": pagination}
