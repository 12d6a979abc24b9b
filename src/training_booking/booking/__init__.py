"""Booking engine: enrollment transaction and enrollment listing."""

from training_booking.booking.engine import BookingEngine

__all__ = ["BookingEngine"]
