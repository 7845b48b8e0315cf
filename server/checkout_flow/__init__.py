"""Checkout flow: payment-method selection, provider hand-off and backend verification."""

__version__ = "0.1.0"
