"""Reminder outcome history and best-time-of-day estimation."""
