"""Promo codes and automatic promotions with the validation/discount engine."""
