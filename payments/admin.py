# payments/admin.py

from django.contrib import admin, messages

from .exceptions import PaymentError
from .models import (
    CustomUser,
    Job,
    LedgerEntry,
    Notification,
    Payment,
    Settlement,
    SettlementItem,
    Wallet,
    WorkSession,
)
from .services.settlements import SettlementService


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = (
        'id',
        'username',
        'email',
        'phone_number',
        'role',
        'is_active',
        'is_staff',
    )
    list_filter = ('role', 'is_active', 'is_staff')
    search_fields = ('username', 'email', 'phone_number')


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'business', 'status', 'completed_at', 'updated_at')
    list_filter = ('status',)
    search_fields = ('title', 'business__username')


@admin.register(WorkSession)
class WorkSessionAdmin(admin.ModelAdmin):
    list_display = ('id', 'job', 'worker', 'started_at', 'ended_at')
    search_fields = ('worker__username',)


class ReadOnlyAdmin(admin.ModelAdmin):
    """Money rows are written by the services only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Wallet)
class WalletAdmin(ReadOnlyAdmin):
    list_display = (
        'id',
        'user',
        'balance',
        'pending_balance',
        'withdrawable_balance',
        'total_earned',
        'total_withdrawn',
        'last_updated_at',
    )
    search_fields = ('user__username',)


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyAdmin):
    list_display = ('id', 'user', 'type', 'bucket', 'amount', 'reference_id', 'created_at')
    list_filter = ('type', 'bucket')
    search_fields = ('user__username', 'reference_id')


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdmin):
    list_display = (
        'id',
        'order_id',
        'job',
        'worker',
        'business',
        'amount',
        'fee_amount',
        'net_amount',
        'refunded_amount',
        'status',
        'approved_at',
    )
    list_filter = ('status', 'method')
    search_fields = ('order_id', 'payment_key', 'worker__username', 'business__username')


class SettlementItemInline(admin.TabularInline):
    model = SettlementItem
    extra = 0
    can_delete = False
    readonly_fields = ('payment', 'job', 'amount', 'fee_amount', 'net_amount')


@admin.register(Settlement)
class SettlementAdmin(ReadOnlyAdmin):
    list_display = (
        'id',
        'worker',
        'job',
        'net_amount',
        'status',
        'scheduled_at',
        'processed_at',
        'retry_count',
    )
    list_filter = ('status',)
    search_fields = ('worker__username', 'bank_transaction_id')
    inlines = [SettlementItemInline]
    actions = ['process_selected', 'retry_selected']

    def _run(self, request, queryset, operation, label):
        service = SettlementService()
        done = 0
        for settlement in queryset:
            try:
                getattr(service, operation)(settlement.id)
                done += 1
            except PaymentError as e:
                self.message_user(request, f"Settlement #{settlement.id}: {e.message}", level=messages.WARNING)
        self.message_user(request, f"{label} {done} settlement(s).")

    def process_selected(self, request, queryset):
        """
        Admin action: process selected PENDING settlements now instead of waiting for the daily run.
        """
        self._run(request, queryset, 'process_settlement', 'Processed')

    process_selected.short_description = "Process selected pending settlements now"

    def retry_selected(self, request, queryset):
        self._run(request, queryset, 'retry_settlement', 'Retried')

    retry_selected.short_description = "Retry selected failed settlements"


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'type', 'title', 'read', 'created_at')
    list_filter = ('type', 'read')
    search_fields = ('user__username', 'title')
