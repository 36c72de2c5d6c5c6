# payments/views.py

import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .exceptions import PaymentError, PaymentNotFound
from .models import Payment
from .permissions import IsAuthenticatedAndAdmin, IsAuthenticatedAndBusiness, is_admin_user
from .serializers import (
    FeePreviewSerializer,
    PaymentCancelSerializer,
    PaymentConfirmSerializer,
    PaymentHistoryQuerySerializer,
    PaymentRequestSerializer,
    PaymentSerializer,
    SettlementQuerySerializer,
    SettlementSerializer,
)
from .services.payments import PaymentService
from .services.settlements import SettlementService
from .services.wallet import WalletLedger

logger = logging.getLogger(__name__)


def _error(exc: PaymentError):
    return Response(exc.as_dict(), status=exc.http_status)


def _invalid(serializer):
    return Response({'code': 'VALIDATION_ERROR', 'errors': serializer.errors}, status=400)


def _can_access_payment(user, payment):
    return is_admin_user(user) or user.id in (payment.worker_id, payment.business_id)


# -------------------
# PAYMENTS
# -------------------

@api_view(['POST'])
@permission_classes([IsAuthenticatedAndBusiness])
def request_payment(request):
    """
    POST /api/payments/request/
    The authenticated business creates a PENDING payment for a job.
    """
    serializer = PaymentRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    data = serializer.validated_data

    try:
        payment = PaymentService().create_payment(
            job_id=data['job_id'],
            worker_id=data['worker_id'],
            business_id=request.user.id,
            amount=data['amount'],
            order_name=data['order_name'],
            customer_name=data['customer_name'],
            customer_email=data['customer_email'],
            customer_mobile_phone=data.get('customer_mobile_phone'),
        )
    except PaymentError as e:
        return _error(e)

    return Response({
        'paymentId': payment.id,
        'orderId': payment.order_id,
        'amount': payment.amount,
        'customerName': payment.customer_name,
    }, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def confirm_payment(request):
    """
    POST /api/payments/confirm/
    Called after the client-side checkout redirects back with paymentKey/orderId/amount.
    """
    serializer = PaymentConfirmSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    data = serializer.validated_data

    payment = Payment.objects.filter(order_id=data['order_id']).first()
    if payment is None or not (is_admin_user(request.user) or payment.business_id == request.user.id):
        return _error(PaymentNotFound())

    try:
        payment = PaymentService().confirm_payment(data['payment_key'], data['order_id'], data['amount'])
    except PaymentError as e:
        return _error(e)

    return Response({
        'paymentId': payment.id,
        'orderId': payment.order_id,
        'status': payment.status,
        'approvedAt': payment.approved_at,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def cancel_payment(request, pk):
    """
    POST /api/payments/<id>/cancel/
    Full cancel when cancel_amount is omitted, partial refund otherwise.
    """
    serializer = PaymentCancelSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    data = serializer.validated_data

    service = PaymentService()
    try:
        payment = service.get_payment(pk)
        if not (is_admin_user(request.user) or payment.business_id == request.user.id):
            raise PaymentNotFound()
        payment = service.cancel_payment(pk, data['cancel_reason'], data.get('cancel_amount'))
    except PaymentError as e:
        return _error(e)

    return Response({
        'paymentId': payment.id,
        'status': payment.status,
        'cancelledAt': payment.cancelled_at,
        'cancelAmount': payment.cancel_amount,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_status(request, key):
    try:
        payment = PaymentService().get_payment_status(key)
        if not _can_access_payment(request.user, payment):
            raise PaymentNotFound()
    except PaymentError as e:
        return _error(e)

    return Response(PaymentSerializer(payment).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_history(request):
    query = PaymentHistoryQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return _invalid(query)
    params = query.validated_data

    try:
        history = PaymentService().get_payment_history(
            request.user.id,
            page=params['page'],
            limit=params['limit'],
            status=params.get('status'),
            method=params.get('method'),
        )
    except PaymentError as e:
        return _error(e)

    return Response({
        'payments': PaymentSerializer(history['payments'], many=True).data,
        'pagination': history['pagination'],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_stats(request):
    try:
        stats = PaymentService().get_payment_stats(request.user.id, request.query_params.get('period', '30d'))
    except PaymentError as e:
        return _error(e)
    return Response(stats)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def calculate_fee(request):
    serializer = FeePreviewSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer)
    data = serializer.validated_data

    payer_role = data.get('payer_role') or request.user.role
    try:
        breakdown = PaymentService().preview_fee(data['amount'], payer_role)
    except PaymentError as e:
        return _error(e)
    return Response(breakdown)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def wallet_detail(request):
    return Response(WalletLedger().get_wallet_snapshot(request.user.id))


# -------------------
# SETTLEMENTS
# -------------------

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_settlements(request):
    query = SettlementQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return _invalid(query)
    params = query.validated_data

    history = SettlementService().get_settlement_history(
        request.user.id,
        page=params['page'],
        limit=params['limit'],
        status=params.get('status'),
    )
    return Response({
        'settlements': SettlementSerializer(history['settlements'], many=True).data,
        'pagination': history['pagination'],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def settlement_stats(request):
    try:
        stats = SettlementService().get_settlement_stats(
            request.user.id, request.query_params.get('period', '30d')
        )
    except PaymentError as e:
        return _error(e)
    return Response(stats)


# -------------------
# ADMIN SETTLEMENT TOOLING
# -------------------

@api_view(['GET'])
@permission_classes([IsAuthenticatedAndAdmin])
def admin_settlements(request):
    """
    GET /api/payments/admin/settlements/?status=FAILED
    """
    query = SettlementQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return _invalid(query)
    params = query.validated_data

    listing = SettlementService().list_settlements(
        status=params.get('status'),
        page=params['page'],
        limit=params['limit'],
    )
    return Response({
        'settlements': SettlementSerializer(listing['settlements'], many=True).data,
        'pagination': listing['pagination'],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticatedAndAdmin])
def admin_process_settlement(request, pk):
    try:
        settlement = SettlementService().process_settlement(pk)
    except PaymentError as e:
        return _error(e)

    logger.info(f"Admin {request.user.id} processed settlement #{pk}: {settlement.status}")
    return Response(SettlementSerializer(settlement).data)


@api_view(['POST'])
@permission_classes([IsAuthenticatedAndAdmin])
def admin_retry_settlement(request, pk):
    try:
        settlement = SettlementService().retry_settlement(pk)
    except PaymentError as e:
        return _error(e)

    logger.info(f"Admin {request.user.id} retried settlement #{pk}: {settlement.status}")
    return Response(SettlementSerializer(settlement).data)


@api_view(['POST'])
@permission_classes([IsAuthenticatedAndAdmin])
def admin_create_settlement(request, job_id):
    try:
        settlement = SettlementService().create_settlement(job_id)
    except PaymentError as e:
        return _error(e)

    logger.info(f"Admin {request.user.id} created settlement #{settlement.id} for job {job_id}")
    return Response(SettlementSerializer(settlement).data, status=201)
