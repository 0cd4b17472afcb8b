"""Appointment bookings: slot checks, payment holds, cancellation and refunds."""
