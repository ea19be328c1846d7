# backend/bookingcore/routes/__init__.py
"""HTTP routes for the booking engine."""
