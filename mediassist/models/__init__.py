"""Data models for the booking engine."""

from .booking import BookingRecord, BookingStatus, Priority
from .turn import Turn

__all__ = ["BookingRecord", "BookingStatus", "Priority", "Turn"]
