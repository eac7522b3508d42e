"""
bookable - bookable appointment slots for a single-location business.
"""

__version__ = "0.1.0"
