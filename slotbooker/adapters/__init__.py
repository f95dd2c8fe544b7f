"""
Adapters layer - External integrations (Microsoft Graph API, SQL storage).
"""

from .booking_store import BookingStore
from .graph_client import GraphClient
from .graph_authenticator import GraphAuthenticator
from .mock_graph_client import MockGraphClient

__all__ = [
    "BookingStore",
    "GraphClient",
    "GraphAuthenticator",
    "MockGraphClient",
]
