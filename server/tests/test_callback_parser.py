import pytest

from checkout_flow.models.session import PaymentMethodType
from checkout_flow.services.callback_parser import CallbackOutcome, MalformedCallback, parse_callback


class TestParseCallback:
    def test_sslcommerz_success(self):
        params = parse_callback(
            PaymentMethodType.SSLCOMMERZ,
            CallbackOutcome.SUCCESS,
            {"tran_id": "T1", "val_id": "V1", "amount": "150.00", "card_type": "VISA-Dutch Bangla"},
        )

        assert params.transaction_id == "T1"
        assert params.proof == {"val_id": "V1", "amount": "150.00", "card_type": "VISA-Dutch Bangla"}

    def test_sslcommerz_missing_fields_use_defaults(self):
        params = parse_callback(PaymentMethodType.SSLCOMMERZ, CallbackOutcome.FAIL, {"transactionId": "T1"})

        assert params.proof == {"val_id": "", "amount": "0", "card_type": ""}
        assert params.message is None

    def test_sslcommerz_failure_message(self):
        params = parse_callback(
            PaymentMethodType.SSLCOMMERZ,
            CallbackOutcome.FAIL,
            {"tran_id": "T1", "status": "FAILED", "error": "Card declined"},
        )

        assert params.outcome is CallbackOutcome.FAIL
        assert params.message == "Card declined"

    def test_paypal_return(self):
        params = parse_callback(
            PaymentMethodType.PAYPAL,
            CallbackOutcome.SUCCESS,
            {"transactionId": "T2", "token": "EC-1", "PayerID": "PAYER"},
        )

        assert params.proof == {"token": "EC-1", "payer_id": "PAYER"}

    def test_paypal_cancel_has_no_payer(self):
        params = parse_callback(PaymentMethodType.PAYPAL, CallbackOutcome.CANCEL, {"transactionId": "T2", "token": "EC-1"})

        assert params.proof["payer_id"] == ""

    def test_stripe_redirect(self):
        params = parse_callback(
            PaymentMethodType.STRIPE,
            CallbackOutcome.SUCCESS,
            {"transaction_id": "T3", "payment_intent": "pi_1", "redirect_status": "succeeded"},
        )

        assert params.proof == {"payment_intent_id": "pi_1"}
        assert params.message == "succeeded"

    def test_razorpay_fields(self):
        params = parse_callback(
            PaymentMethodType.RAZORPAY,
            CallbackOutcome.SUCCESS,
            {
                "transactionId": "T4",
                "razorpay_payment_id": "P1",
                "razorpay_order_id": "O1",
                "razorpay_signature": "S1",
            },
        )

        assert params.proof == {"payment_id": "P1", "order_id": "O1", "signature": "S1"}

    def test_cod_has_empty_proof(self):
        params = parse_callback(PaymentMethodType.COD, CallbackOutcome.SUCCESS, {"transactionId": "T5"})

        assert params.proof == {}

    def test_first_transaction_key_wins(self):
        params = parse_callback(
            PaymentMethodType.SSLCOMMERZ,
            CallbackOutcome.SUCCESS,
            {"transactionId": "A", "tran_id": "B"},
        )

        assert params.transaction_id == "A"

    @pytest.mark.parametrize("query", [{}, {"transactionId": ""}, {"val_id": "V1"}])
    def test_transaction_id_is_mandatory(self, query):
        with pytest.raises(MalformedCallback) as exc_info:
            parse_callback(PaymentMethodType.SSLCOMMERZ, CallbackOutcome.SUCCESS, query)

        assert exc_info.value.error_code == "missing_transaction_id"
