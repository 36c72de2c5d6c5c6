from decimal import Decimal

from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from payments.exceptions import InvalidAmount
from payments.services.fees import compute_fee, get_fee_rate


@override_settings(PAYMENT_FEE_RATE="0.05", PAYMENT_FEE_RATES_BY_ROLE={})
class ComputeFeeTests(SimpleTestCase):
    def test_default_rate_splits_gross(self):
        breakdown = compute_fee(20000)
        self.assertEqual(breakdown.fee_amount, 1000)
        self.assertEqual(breakdown.net_amount, 19000)
        self.assertEqual(breakdown.fee_rate, Decimal("0.05"))

    def test_fee_is_floored(self):
        breakdown = compute_fee(10019)
        # 10019 * 0.05 = 500.95
        self.assertEqual(breakdown.fee_amount, 500)
        self.assertEqual(breakdown.net_amount, 9519)

    def test_fee_plus_net_is_gross(self):
        for gross in (1, 19, 99, 12345, 999999):
            breakdown = compute_fee(gross)
            self.assertEqual(breakdown.fee_amount + breakdown.net_amount, gross)

    def test_same_input_same_output(self):
        self.assertEqual(compute_fee(33333), compute_fee(33333))

    def test_zero_amount(self):
        breakdown = compute_fee(0)
        self.assertEqual((breakdown.fee_amount, breakdown.net_amount), (0, 0))

    def test_rejects_negative_and_non_integer(self):
        for bad in (-1, 10.5, "1000", True, None):
            with self.assertRaises(InvalidAmount):
                compute_fee(bad)

    def test_explicit_rate_wins(self):
        breakdown = compute_fee(10000, payer_role="business", fee_rate=Decimal("0.1"))
        self.assertEqual(breakdown.fee_amount, 1000)

    @override_settings(PAYMENT_FEE_RATES_BY_ROLE={"worker": "0.033", "business": "0.055"})
    def test_role_rates(self):
        self.assertEqual(compute_fee(10000, payer_role="business").fee_amount, 550)
        self.assertEqual(compute_fee(10000, payer_role="worker").fee_amount, 330)
        # unknown roles use the default
        self.assertEqual(compute_fee(10000, payer_role="admin").fee_amount, 500)

    def test_as_dict(self):
        self.assertEqual(
            compute_fee(20000).as_dict(),
            {"originalAmount": 20000, "fee": 1000, "feeRate": "0.05", "netAmount": 19000},
        )

    @override_settings(PAYMENT_FEE_RATE="1.5")
    def test_out_of_range_rate_is_a_config_error(self):
        with self.assertRaises(ImproperlyConfigured):
            get_fee_rate()
