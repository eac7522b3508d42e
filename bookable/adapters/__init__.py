"""
Adapters layer - External integrations (Microsoft Graph, JSON files).
"""

from .graph_authenticator import GraphAuthenticator
from .graph_calendar import GraphCalendarSource
from .json_ledger import JsonLedgerSource
from .mock_calendar import MockCalendarSource

__all__ = ["GraphAuthenticator", "GraphCalendarSource", "JsonLedgerSource", "MockCalendarSource"]
