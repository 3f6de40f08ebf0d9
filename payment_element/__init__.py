"""Stripe Payment Element demo service."""

__version__ = "1.0.0"
