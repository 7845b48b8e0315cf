"""Parsing of provider redirects that land on the callback addresses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Mapping, Optional

from checkout_flow.integrations.payment_gateways.base import CheckoutError
from checkout_flow.models.session import PaymentMethodType

TRANSACTION_KEYS = ("transactionId", "transaction_id", "tran_id")


class CallbackOutcome(str, Enum):
    SUCCESS = "success"
    FAIL = "fail"
    CANCEL = "cancel"


class MalformedCallback(CheckoutError):
    pass


@dataclass(frozen=True)
class CallbackParams:
    method: PaymentMethodType
    outcome: CallbackOutcome
    transaction_id: str
    proof: Dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None


def _sslcommerz(query: Mapping[str, str]) -> tuple[Dict[str, str], Optional[str]]:
    proof = {
        "val_id": query.get("val_id", ""),
        "amount": query.get("amount", "0"),
        "card_type": query.get("card_type", ""),
    }
    return proof, query.get("error") or query.get("status")


def _paypal(query: Mapping[str, str]) -> tuple[Dict[str, str], Optional[str]]:
    # cancel redirects carry the token but no PayerID
    proof = {
        "token": query.get("token", ""),
        "payer_id": query.get("PayerID", ""),
    }
    return proof, query.get("error")


def _stripe(query: Mapping[str, str]) -> tuple[Dict[str, str], Optional[str]]:
    proof = {"payment_intent_id": query.get("payment_intent", "")}
    return proof, query.get("redirect_status")


def _razorpay(query: Mapping[str, str]) -> tuple[Dict[str, str], Optional[str]]:
    proof = {
        "payment_id": query.get("razorpay_payment_id", ""),
        "order_id": query.get("razorpay_order_id", ""),
        "signature": query.get("razorpay_signature", ""),
    }
    return proof, query.get("error[description]") or query.get("error")


def _cod(query: Mapping[str, str]) -> tuple[Dict[str, str], Optional[str]]:
    return {}, query.get("error")


PROOF_PARSERS: Dict[PaymentMethodType, Callable[[Mapping[str, str]], tuple[Dict[str, str], Optional[str]]]] = {
    PaymentMethodType.SSLCOMMERZ: _sslcommerz,
    PaymentMethodType.PAYPAL: _paypal,
    PaymentMethodType.STRIPE: _stripe,
    PaymentMethodType.RAZORPAY: _razorpay,
    PaymentMethodType.COD: _cod,
}


def parse_callback(
    method: PaymentMethodType,
    outcome: CallbackOutcome,
    query: Mapping[str, str],
) -> CallbackParams:
    """
    Build CallbackParams from redirect query parameters.

    Optional provider fields fall back to defaults; only the transaction
    id is mandatory.

    Raises:
        MalformedCallback: If no transaction id is present
    """
    transaction_id = next((query[key] for key in TRANSACTION_KEYS if query.get(key)), None)
    if not transaction_id:
        raise MalformedCallback(
            f"{method.value} {outcome.value} callback carries no transaction id",
            error_code="missing_transaction_id",
            provider=method.value,
        )

    proof, message = PROOF_PARSERS[method](query)
    return CallbackParams(
        method=method,
        outcome=outcome,
        transaction_id=transaction_id,
        proof=proof,
        message=message,
    )
