"""Notifications app package.

Handles delivery of notifications via email, Twilio SMS and the in-app
inbox, plus each business's templates, triggers and quiet hours.
"""
