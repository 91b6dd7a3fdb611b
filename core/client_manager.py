"""
Glacier client lifecycle management.

Region and credential setup is process-wide configuration. This module builds
the boto3 Glacier client once at application startup and hands the resulting
GlacierClient facade to whoever needs it. Nothing reads the client from
ambient state; it is passed explicitly to every component.

THREAD SAFETY:
    - initialize() and cleanup() must be called from the main thread only
    - the client property is read-only and safe to share (boto3 clients are
      thread-safe)

FAIL FAST BEHAVIOR:
    - If no region can be resolved, or the profile is unknown:
      raises ClientUnavailableError
    - No credentials are checked at startup; the first remote call surfaces
      credential problems as a typed retrieval error

Usage:
    # At application startup (main thread)
    manager = ClientManager(region="eu-west-2")
    manager.initialize()

    output = await retrieve(manager.client, archive_id, vault_id, "bulk")

    # At application shutdown (main thread)
    manager.cleanup()
"""

from __future__ import annotations

import logging
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError

from .exceptions import ClientUnavailableError
from .glacier_client import GlacierClient, DEFAULT_ACCOUNT_ID


# Used when neither the environment nor the profile names a region
FALLBACK_REGION = "eu-west-2"


class ClientManager:
    """
    Manages the Glacier client lifecycle.

    This class is responsible for:
    1. Building a boto3 session and Glacier client at startup
    2. Wrapping it in the GlacierClient facade
    3. Closing the client's connection pool at shutdown

    Attributes:
        region: Region the client was (or will be) built for
        is_initialized: True if the client is ready
        client: GlacierClient facade (read-only after init)
    """

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        account_id: str = DEFAULT_ACCOUNT_ID,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize client manager.

        Args:
            region: AWS region (session default, then FALLBACK_REGION, if None)
            profile: Named AWS profile (default credential chain if None)
            endpoint_url: Override endpoint, e.g. for a local emulator
            account_id: Glacier account id passed on every call
            logger: Logger instance (optional, creates default if not provided)

        Note:
            This does NOT build the client - call initialize() to do that.
        """
        self._region = region
        self._profile = profile
        self._endpoint_url = endpoint_url
        self._account_id = account_id
        self._logger = logger or logging.getLogger("vault_retrieval.core.client_manager")
        self._boto_client = None
        self._client: Optional[GlacierClient] = None
        self._is_initialized = False

    @property
    def region(self) -> Optional[str]:
        return self._region

    @property
    def is_initialized(self) -> bool:
        """True if the client has been built and not cleaned up."""
        return self._is_initialized

    @property
    def client(self) -> GlacierClient:
        """
        GlacierClient facade for remote calls.

        Raises:
            RuntimeError: If not initialized
        """
        if not self._is_initialized or self._client is None:
            raise RuntimeError("Glacier client not initialized - call initialize() first")
        return self._client

    def initialize(self) -> GlacierClient:
        """
        Build the boto3 client and the facade.

        MUST be called from the main thread only.

        Returns:
            The GlacierClient facade

        Raises:
            ClientUnavailableError: If the session or client cannot be built
            RuntimeError: If called when already initialized
        """
        if self._is_initialized:
            raise RuntimeError("Glacier client already initialized")

        try:
            session = boto3.session.Session(profile_name=self._profile)
            region = self._region or session.region_name or FALLBACK_REGION
            self._logger.info(f"Initializing Glacier client: region={region}")

            self._boto_client = session.client(
                "glacier",
                region_name=region,
                endpoint_url=self._endpoint_url,
                config=BotoConfig(retries={"max_attempts": 3, "mode": "standard"}),
            )
        except (BotoCoreError, ValueError) as e:
            self._logger.critical(f"Failed to build Glacier client: {e}")
            raise ClientUnavailableError(reason=str(e)) from e

        self._region = region
        self._client = GlacierClient(self._boto_client, account_id=self._account_id)
        self._is_initialized = True

        self._logger.info("Glacier client initialized")
        return self._client

    def cleanup(self) -> None:
        """
        Close the client's connection pool.

        MUST be called from the main thread only.
        Safe to call multiple times (idempotent).
        """
        if not self._is_initialized:
            self._logger.debug("Glacier client not initialized, nothing to clean up")
            return

        close = getattr(self._boto_client, "close", None)
        if close is not None:
            try:
                close()
                self._logger.info("Glacier client closed")
            except Exception as e:
                self._logger.error(f"Error closing Glacier client: {e}")

        self._boto_client = None
        self._client = None
        self._is_initialized = False

    def __enter__(self) -> "ClientManager":
        """Context manager entry - build client."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close client."""
        self.cleanup()
