"""
Unit tests for ClientManager.

boto3 is patched out; no session or network access is needed.
"""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ProfileNotFound

from core.client_manager import ClientManager, FALLBACK_REGION
from core.exceptions import ClientUnavailableError
from core.glacier_client import GlacierClient


@pytest.fixture
def mock_boto3():
    """Patch boto3 in the client manager module."""
    with patch("core.client_manager.boto3") as boto3:
        session = boto3.session.Session.return_value
        session.region_name = None
        session.client.return_value = MagicMock(name="glacier")
        yield boto3


class TestInitialize:

    def test_builds_facade(self, mock_boto3):
        manager = ClientManager(region="us-east-1", profile="archive")

        client = manager.initialize()

        assert isinstance(client, GlacierClient)
        assert manager.client is client
        assert manager.is_initialized is True
        assert manager.region == "us-east-1"
        mock_boto3.session.Session.assert_called_once_with(profile_name="archive")
        session = mock_boto3.session.Session.return_value
        args, kwargs = session.client.call_args
        assert args == ("glacier",)
        assert kwargs["region_name"] == "us-east-1"
        assert kwargs["endpoint_url"] is None

    def test_region_from_session(self, mock_boto3):
        mock_boto3.session.Session.return_value.region_name = "eu-central-1"
        manager = ClientManager()

        manager.initialize()

        assert manager.region == "eu-central-1"

    def test_fallback_region(self, mock_boto3):
        manager = ClientManager()

        manager.initialize()

        assert manager.region == FALLBACK_REGION

    def test_account_id_passed_to_facade(self, mock_boto3):
        manager = ClientManager(account_id="123456789012")
        assert manager.initialize().account_id == "123456789012"

    def test_unknown_profile_fails_fast(self, mock_boto3):
        mock_boto3.session.Session.side_effect = ProfileNotFound(profile="missing")
        manager = ClientManager(profile="missing")

        with pytest.raises(ClientUnavailableError) as exc_info:
            manager.initialize()

        assert "missing" in exc_info.value.details["reason"]
        assert manager.is_initialized is False

    def test_bad_endpoint_fails_fast(self, mock_boto3):
        mock_boto3.session.Session.return_value.client.side_effect = ValueError("Invalid endpoint: nope")
        manager = ClientManager(endpoint_url="nope")

        with pytest.raises(ClientUnavailableError):
            manager.initialize()

    def test_double_initialize_rejected(self, mock_boto3):
        manager = ClientManager()
        manager.initialize()

        with pytest.raises(RuntimeError):
            manager.initialize()

    def test_client_before_initialize(self):
        with pytest.raises(RuntimeError):
            ClientManager().client


class TestCleanup:

    def test_cleanup_closes_client(self, mock_boto3):
        manager = ClientManager()
        manager.initialize()
        boto_client = mock_boto3.session.Session.return_value.client.return_value

        manager.cleanup()

        boto_client.close.assert_called_once()
        assert manager.is_initialized is False
        with pytest.raises(RuntimeError):
            manager.client

    def test_cleanup_is_idempotent(self, mock_boto3):
        manager = ClientManager()
        manager.initialize()

        manager.cleanup()
        manager.cleanup()

        boto_client = mock_boto3.session.Session.return_value.client.return_value
        assert boto_client.close.call_count == 1

    def test_cleanup_without_initialize(self):
        ClientManager().cleanup()

    def test_context_manager(self, mock_boto3):
        with ClientManager() as manager:
            assert manager.is_initialized is True
        assert manager.is_initialized is False
