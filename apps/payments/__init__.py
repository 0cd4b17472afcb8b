"""Stripe Connect payments: fee split, gateway wrapper and webhook processing."""
