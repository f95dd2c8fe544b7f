"""
Microsoft Graph API authentication using MSAL (Client Credentials Flow).
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import msal

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class GraphAuthenticator:
    """
    Handles app-only authentication with Microsoft Graph API.

    The booking backend acts on project managers' calendars without a signed-in
    user, so it uses the client credentials grant:
    1. App presents its client id and secret to the tenant
    2. Tenant issues a token for the ``.default`` Graph scope
    3. MSAL caches the token in memory until shortly before it expires
    """

    SCOPES = ["https://graph.microsoft.com/.default"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        client_secret: str,
        authority_url: str | None = None,
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: Azure AD application (client) ID
            tenant_id: Azure AD tenant ID
            client_secret: Application secret
            authority_url: Optional custom authority URL
        """
        self.client_id = client_id
        self.tenant_id = tenant_id

        # Build authority URL
        if authority_url:
            self.authority = authority_url
        else:
            self.authority = f"https://login.microsoftonline.com/{tenant_id}"

        self.app = msal.ConfidentialClientApplication(
            client_id=self.client_id,
            client_credential=client_secret,
            authority=self.authority,
        )

    def get_access_token(self) -> str:
        """
        Get a valid access token, served from MSAL's cache when possible.

        Returns:
            Access token string

        Raises:
            AuthenticationError: If authentication fails
        """
        try:
            result: Dict[str, Any] = self.app.acquire_token_for_client(scopes=self.SCOPES)
        except Exception as exc:  # pragma: no cover - MSAL internal failure
            raise AuthenticationError(f"Failed to acquire token: {exc}") from exc

        if not result or "access_token" not in result:
            error = (result or {}).get("error_description", "Unknown error")
            logger.error("Token request for tenant %s failed: %s", self.tenant_id, error)
            raise AuthenticationError(f"Authentication failed: {error}")

        if result.get("token_source") == "cache":
            logger.debug("Using cached Graph token")

        return result["access_token"]
