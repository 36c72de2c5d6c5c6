# payments/services/wallet.py

from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from payments.exceptions import InsufficientBalance, InsufficientPendingBalance, InvalidAmount
from payments.models import LedgerEntry, Wallet

logger = logging.getLogger(__name__)

Bucket = LedgerEntry.Bucket
EntryType = LedgerEntry.Type

BUCKET_FIELDS = {
    Bucket.PENDING: "pending_balance",
    Bucket.WITHDRAWABLE: "withdrawable_balance",
}

# Entry types whose amounts must add up to pending + withdrawable
BALANCE_ENTRY_TYPES = (EntryType.PAYMENT, EntryType.REFUND, EntryType.SETTLEMENT)


def _check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Ledger amount must be a positive integer, got {amount!r}")
    return amount


def _bucket_field(bucket) -> str:
    try:
        return BUCKET_FIELDS[Bucket(bucket)]
    except (KeyError, ValueError):
        raise ValueError(f"Not a wallet bucket: {bucket!r}")


class WalletLedger:
    """
    Read-modify-write of a wallet row plus one ledger insert, always in the same
    transaction. The wallet row is locked with SELECT ... FOR UPDATE so concurrent
    credits and debits for one user serialize at the database.
    """

    def __init__(self, clock=None):
        self.clock = clock or timezone.now

    def get_or_create_wallet(self, user_id) -> Wallet:
        # get_or_create retries the lookup on IntegrityError, and the unique
        # user column makes concurrent first access safe.
        wallet, created = Wallet.objects.get_or_create(
            user_id=user_id,
            defaults={"last_updated_at": self.clock()},
        )
        if created:
            logger.info(f"Wallet created for user {user_id}")
        return wallet

    def _lock_wallet(self, user_id) -> Wallet:
        self.get_or_create_wallet(user_id)
        return Wallet.objects.select_for_update().get(user_id=user_id)

    def _write(self, wallet, user_id, signed_amount, bucket, ledger_type, reference_id, description,
               payment=None, settlement=None) -> LedgerEntry:
        now = self.clock()
        wallet.balance = wallet.pending_balance + wallet.withdrawable_balance
        wallet.last_updated_at = now
        wallet.save(update_fields=[
            "balance",
            "pending_balance",
            "withdrawable_balance",
            "total_earned",
            "total_withdrawn",
            "last_updated_at",
        ])
        return LedgerEntry.objects.create(
            user_id=user_id,
            type=ledger_type,
            bucket=bucket,
            amount=signed_amount,
            reference_id=str(reference_id or ""),
            description=description[:255],
            payment=payment,
            settlement=settlement,
            created_at=now,
        )

    def credit(self, user_id, amount, bucket, ledger_type, reference_id="", description="",
               payment=None, settlement=None) -> LedgerEntry:
        amount = _check_amount(amount)
        field = _bucket_field(bucket)

        with transaction.atomic():
            wallet = self._lock_wallet(user_id)
            setattr(wallet, field, getattr(wallet, field) + amount)
            if ledger_type == EntryType.PAYMENT:
                wallet.total_earned += amount
            entry = self._write(
                wallet, user_id, amount, bucket, ledger_type, reference_id, description,
                payment=payment, settlement=settlement,
            )

        logger.info(f"Wallet credit user={user_id} {field}+={amount} type={ledger_type} ref={reference_id}")
        return entry

    def debit(self, user_id, amount, bucket, ledger_type, reference_id="", description="",
              payment=None, settlement=None) -> LedgerEntry:
        amount = _check_amount(amount)
        field = _bucket_field(bucket)

        with transaction.atomic():
            wallet = self._lock_wallet(user_id)
            current = getattr(wallet, field)
            if current < amount:
                logger.error(
                    f"data-integrity: debit of {amount} from {field}={current} for user {user_id} "
                    f"(type={ledger_type}, ref={reference_id}) would go negative"
                )
                error_cls = InsufficientPendingBalance if field == "pending_balance" else InsufficientBalance
                raise error_cls(
                    f"Cannot debit {amount} from {field} ({current} available).",
                    user_id=user_id,
                    requested=amount,
                    available=current,
                )
            setattr(wallet, field, current - amount)
            entry = self._write(
                wallet, user_id, -amount, bucket, ledger_type, reference_id, description,
                payment=payment, settlement=settlement,
            )

        logger.info(f"Wallet debit user={user_id} {field}-={amount} type={ledger_type} ref={reference_id}")
        return entry

    def transfer(self, user_id, amount, from_bucket=Bucket.PENDING, to_bucket=Bucket.WITHDRAWABLE,
                 reference_id="", description="", settlement=None):
        """Move funds between buckets; both legs commit or neither does."""
        if Bucket(from_bucket) == Bucket(to_bucket):
            raise ValueError("Transfer needs two different buckets")

        with transaction.atomic():
            debit_entry = self.debit(
                user_id, amount, from_bucket, EntryType.SETTLEMENT,
                reference_id=reference_id, description=description, settlement=settlement,
            )
            credit_entry = self.credit(
                user_id, amount, to_bucket, EntryType.SETTLEMENT,
                reference_id=reference_id, description=description, settlement=settlement,
            )
        return debit_entry, credit_entry

    def record_fee(self, user_id, amount, reference_id="", description="", payment=None) -> LedgerEntry:
        """Fee audit entry for the paying business; no wallet is touched."""
        amount = _check_amount(amount)
        return LedgerEntry.objects.create(
            user_id=user_id,
            type=EntryType.FEE,
            bucket=Bucket.NONE,
            amount=amount,
            reference_id=str(reference_id or ""),
            description=description[:255],
            payment=payment,
            created_at=self.clock(),
        )

    def get_wallet_snapshot(self, user_id) -> dict:
        wallet = self.get_or_create_wallet(user_id)
        return {
            "userId": wallet.user_id,
            "balance": wallet.balance,
            "pendingBalance": wallet.pending_balance,
            "withdrawableBalance": wallet.withdrawable_balance,
            "totalEarned": wallet.total_earned,
            "totalWithdrawn": wallet.total_withdrawn,
            "lastUpdatedAt": wallet.last_updated_at,
        }

    def ledger_sum(self, user_id) -> int:
        total = LedgerEntry.objects.filter(
            user_id=user_id, type__in=BALANCE_ENTRY_TYPES
        ).aggregate(total=Sum("amount"))["total"]
        return total or 0

    def verify_conservation(self, user_id) -> bool:
        wallet = self.get_or_create_wallet(user_id)
        ledger_total = self.ledger_sum(user_id)
        wallet_total = wallet.pending_balance + wallet.withdrawable_balance
        if ledger_total != wallet_total:
            logger.error(
                f"data-integrity: ledger sum {ledger_total} != wallet total {wallet_total} for user {user_id}"
            )
            return False
        return True
