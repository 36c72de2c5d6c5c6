from django.test import SimpleTestCase

from payments.exceptions import InvalidPaymentState, InvalidSettlementState
from payments.models import Payment, PaymentStatus, Settlement, SettlementStatus


class PaymentStateMachineTests(SimpleTestCase):
    def test_allowed_paths(self):
        payment = Payment(status=PaymentStatus.PENDING)
        payment.transition_to(PaymentStatus.COMPLETED)
        payment.transition_to(PaymentStatus.PARTIAL_REFUNDED)
        payment.transition_to(PaymentStatus.PARTIAL_REFUNDED)
        payment.transition_to(PaymentStatus.CANCELLED)
        self.assertEqual(payment.status, PaymentStatus.CANCELLED)

    def test_nothing_returns_to_pending(self):
        for status in PaymentStatus:
            self.assertFalse(Payment(status=status).can_transition_to(PaymentStatus.PENDING))

    def test_terminal_states(self):
        for status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED, PaymentStatus.REFUNDED):
            payment = Payment(status=status, order_id="ORDER_X")
            with self.assertRaises(InvalidPaymentState):
                payment.transition_to(PaymentStatus.COMPLETED)

    def test_pending_cannot_be_refunded(self):
        self.assertFalse(Payment(status=PaymentStatus.PENDING).can_transition_to(PaymentStatus.CANCELLED))

    def test_remaining_amount(self):
        self.assertEqual(Payment(amount=20000, refunded_amount=5000).remaining_amount, 15000)


class SettlementStateMachineTests(SimpleTestCase):
    def test_happy_path_and_retry(self):
        settlement = Settlement(status=SettlementStatus.PENDING)
        settlement.transition_to(SettlementStatus.PROCESSING)
        settlement.transition_to(SettlementStatus.FAILED)
        settlement.transition_to(SettlementStatus.PENDING)
        self.assertEqual(settlement.status, SettlementStatus.PENDING)

    def test_completed_is_final(self):
        settlement = Settlement(status=SettlementStatus.COMPLETED)
        for status in SettlementStatus:
            with self.assertRaises(InvalidSettlementState):
                settlement.transition_to(status)

    def test_pending_cannot_skip_processing(self):
        self.assertFalse(Settlement(status=SettlementStatus.PENDING).can_transition_to(SettlementStatus.COMPLETED))
