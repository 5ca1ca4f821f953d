"""Interval arithmetic, candidate slot generation and conflict detection."""
