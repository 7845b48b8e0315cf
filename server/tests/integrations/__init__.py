"""
Payment method adapter tests

SSLCOMMERZ, PayPal, Stripe, Razorpay and cash on delivery, each driven
against an in-memory browser host.
"""
