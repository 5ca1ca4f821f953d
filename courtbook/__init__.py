"""Slot availability, conflict detection and booking wizard for sports courts."""
