"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AvailabilityService, CalendarSource, LedgerSource

__all__ = ["AvailabilityService", "CalendarSource", "LedgerSource"]
