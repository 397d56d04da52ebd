"""TwistPay payment-verification relay."""

__version__ = "0.3.0"
