"""Builds authenticated Drive clients from job auth data."""

import logging
from typing import Any, Dict, Optional

from models import TokensAndUrlAuthData
from .drive_client import DriveClient

logger = logging.getLogger('drive_content_importer.importers.credential_factory')


class DriveCredentialFactory:
    """Turns job auth data into a configured DriveClient."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize credential factory.

        Args:
            config: Configuration dict used for client settings ('drive', 'advanced')
        """
        self.config = config or {}

    def create_client(self, auth_data: TokensAndUrlAuthData) -> DriveClient:
        """
        Create a Drive client authenticated with the job's access token.

        Args:
            auth_data: Tokens (and optional token server URL) for the destination

        Returns:
            DriveClient instance

        Raises:
            ValueError: If no access token is present
        """
        if auth_data is None or not auth_data.access_token:
            raise ValueError("Auth data must carry an access token")

        logger.debug(f"Creating Drive client (token_url={auth_data.token_url or 'Not Set'})")
        return DriveClient.from_config(auth_data.access_token, self.config)


__all__ = ['DriveCredentialFactory']
