# payments/exceptions.py

"""
Error taxonomy for the payment and settlement engine.

Every error carries a stable ``code`` (surfaced to API callers) and the HTTP
status the API layer answers with. Three families:

- validation errors: raised before any external call or mutation
- external errors: gateway / bank failures, recorded as a FAILED status first
- invariant errors: a balance would go negative; the transaction is aborted
"""


class PaymentError(Exception):
    code = "PAYMENT_ERROR"
    http_status = 400
    default_message = "Payment operation failed."

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        return {"code": self.code, "message": self.message}


# --- validation ---

class InvalidAmount(PaymentError):
    code = "INVALID_AMOUNT"
    default_message = "Amount must be a positive integer in minor units."


class InvalidPeriod(PaymentError):
    code = "INVALID_PERIOD"
    default_message = "Unknown statistics period."


class InvalidPagination(PaymentError):
    code = "INVALID_PAGINATION"
    default_message = "page and limit must be positive integers."


class UserNotFound(PaymentError):
    code = "USER_NOT_FOUND"
    http_status = 404
    default_message = "User not found."


class JobNotFound(PaymentError):
    code = "JOB_NOT_FOUND"
    http_status = 404
    default_message = "Job not found."


class PaymentNotFound(PaymentError):
    code = "PAYMENT_NOT_FOUND"
    http_status = 404
    default_message = "Payment not found."


class AmountMismatch(PaymentError):
    code = "AMOUNT_MISMATCH"
    default_message = "Payment amount does not match the requested amount."


class InvalidPaymentState(PaymentError):
    code = "INVALID_PAYMENT_STATE"
    http_status = 409
    default_message = "Payment cannot move to the requested state."


class NotCompletedYet(InvalidPaymentState):
    code = "NOT_COMPLETED_YET"
    default_message = "Only completed payments can be cancelled."


class CancelAmountExceedsRemaining(PaymentError):
    code = "CANCEL_AMOUNT_EXCEEDS_REMAINING"
    default_message = "Cancel amount exceeds the amount that can still be refunded."


class PaymentLocked(PaymentError):
    code = "PAYMENT_LOCKED"
    http_status = 409
    default_message = "Another operation is in progress for this payment. Please try again."


class SettlementNotFound(PaymentError):
    code = "SETTLEMENT_NOT_FOUND"
    http_status = 404
    default_message = "Settlement not found."


class InvalidSettlementState(PaymentError):
    code = "INVALID_SETTLEMENT_STATE"
    http_status = 409
    default_message = "Settlement cannot move to the requested state."


class NotPending(InvalidSettlementState):
    code = "NOT_PENDING"
    default_message = "Only pending settlements can be processed."


class NotFailed(InvalidSettlementState):
    code = "NOT_FAILED"
    default_message = "Only failed settlements can be retried."


class JobNotCompleted(PaymentError):
    code = "JOB_NOT_COMPLETED"
    default_message = "Job is not completed."


class NoWorkSession(PaymentError):
    code = "NO_WORK_SESSION"
    default_message = "Job has no work session."


class NoCompletedPayments(PaymentError):
    code = "NO_COMPLETED_PAYMENTS"
    default_message = "Job has no completed payments to settle."


class AlreadySettled(PaymentError):
    code = "ALREADY_SETTLED"
    http_status = 409
    default_message = "Payment already belongs to a settlement."


class LedgerImmutable(PaymentError):
    code = "LEDGER_IMMUTABLE"
    http_status = 500
    default_message = "Ledger entries cannot be changed or deleted."


# --- external ---

class GatewayRejected(PaymentError):
    code = "GATEWAY_REJECTED"
    http_status = 502
    default_message = "Payment gateway rejected the request."

    def __init__(self, message=None, provider_code=None, status_code=None, **context):
        super().__init__(message, **context)
        self.provider_code = provider_code
        self.status_code = status_code

    def as_dict(self):
        data = super().as_dict()
        if self.provider_code:
            data["providerCode"] = self.provider_code
        return data


class GatewayTimeout(GatewayRejected):
    code = "GATEWAY_TIMEOUT"
    http_status = 504
    default_message = "Payment gateway request timed out."


class BankTransferFailed(PaymentError):
    code = "BANK_TRANSFER_FAILED"
    http_status = 502
    default_message = "Bank transfer failed."


# --- invariants ---

class InsufficientBalance(PaymentError):
    code = "INSUFFICIENT_BALANCE"
    http_status = 409
    default_message = "Wallet balance is insufficient for this debit."


class InsufficientPendingBalance(InsufficientBalance):
    code = "INSUFFICIENT_PENDING_BALANCE"
    default_message = "Worker pending balance is insufficient for this refund."
