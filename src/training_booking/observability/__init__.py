"""Logging and metrics for the booking service."""
