# payments/serializers.py

from rest_framework import serializers

from .models import CustomUser, Payment, PaymentStatus, Settlement, SettlementItem, SettlementStatus


# ---------- inputs ----------

class PaymentRequestSerializer(serializers.Serializer):
    job_id = serializers.IntegerField()
    worker_id = serializers.IntegerField()
    amount = serializers.IntegerField(min_value=1)
    order_name = serializers.CharField(max_length=200)
    customer_name = serializers.CharField(max_length=100)
    customer_email = serializers.EmailField()
    customer_mobile_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)


class PaymentConfirmSerializer(serializers.Serializer):
    payment_key = serializers.CharField(max_length=200)
    order_id = serializers.CharField(max_length=64)
    amount = serializers.IntegerField(min_value=1)


class PaymentCancelSerializer(serializers.Serializer):
    cancel_reason = serializers.CharField(max_length=200)
    cancel_amount = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class FeePreviewSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1)
    payer_role = serializers.ChoiceField(
        choices=[choice for choice, _ in CustomUser.ROLE_CHOICES],
        required=False,
        allow_null=True,
    )


class PaymentHistoryQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False, default=20)
    status = serializers.ChoiceField(choices=PaymentStatus.choices, required=False)
    method = serializers.CharField(max_length=20, required=False)


class SettlementQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False, default=20)
    status = serializers.ChoiceField(choices=SettlementStatus.choices, required=False)


# ---------- outputs ----------

class PaymentSerializer(serializers.ModelSerializer):
    job_title = serializers.CharField(source='job.title', read_only=True)
    remaining_amount = serializers.IntegerField(read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id',
            'order_id',
            'order_name',
            'amount',
            'fee_amount',
            'net_amount',
            'fee_rate',
            'status',
            'method',
            'pg_provider',
            'payment_key',
            'job',
            'job_title',
            'worker',
            'business',
            'approved_at',
            'failed_at',
            'fail_reason',
            'cancelled_at',
            'cancel_reason',
            'cancel_amount',
            'refunded_amount',
            'remaining_amount',
            'created_at',
        ]
        read_only_fields = fields


class SettlementItemSerializer(serializers.ModelSerializer):
    order_id = serializers.CharField(source='payment.order_id', read_only=True)

    class Meta:
        model = SettlementItem
        fields = ['id', 'payment', 'order_id', 'job', 'amount', 'fee_amount', 'net_amount']
        read_only_fields = fields


class SettlementSerializer(serializers.ModelSerializer):
    job_title = serializers.CharField(source='job.title', read_only=True)
    items = SettlementItemSerializer(many=True, read_only=True)

    class Meta:
        model = Settlement
        fields = [
            'id',
            'worker',
            'job',
            'job_title',
            'amount',
            'fee_amount',
            'net_amount',
            'status',
            'scheduled_at',
            'processed_at',
            'fail_reason',
            'bank_transaction_id',
            'retry_count',
            'items',
            'created_at',
        ]
        read_only_fields = fields
