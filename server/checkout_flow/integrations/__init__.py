"""
Integration modules for the checkout flow

Contains the seams to systems the checkout does not own:
- Browser host (script injection, windows, provider widgets)
- Payment method adapters (PayPal, Stripe, Razorpay, SSLCOMMERZ, cash on delivery)
"""
