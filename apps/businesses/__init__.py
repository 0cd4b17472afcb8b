"""Businesses app package.

This app encapsulates the marketplace listings: the business profile,
its photos, weekly opening hours, time off, search and geocoding.
"""
