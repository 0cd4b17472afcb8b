"""Bookable services and retail products offered by businesses."""
