"""Unit tests for the AWS session provider."""

from unittest.mock import patch

import pytest

from infrastructure.clients.aws.session_provider import SessionProvider

ROLE_ARN = "arn:aws:iam::123456789012:role/writer"


@pytest.mark.unit
class TestSessionProvider:
    def test_role_lookup(self):
        provider = SessionProvider(service_role_map={"dynamodb": ROLE_ARN})

        assert provider.get_role_arn_for_service("dynamodb") == ROLE_ARN
        assert provider.get_role_arn_for_service("sts") is None

    def test_role_lookup_without_map(self):
        assert SessionProvider().get_role_arn_for_service("dynamodb") is None

    def test_build_client_kwargs(self):
        provider = SessionProvider(
            region="af-south-1",
            endpoint_url="http://localhost:8000",
            connect_timeout=5,
            read_timeout=10,
            max_attempts=2,
            service_role_map={"dynamodb": ROLE_ARN},
        )

        kwargs = provider.build_client_kwargs(service_name="dynamodb")

        assert kwargs["session_config"] == {"region_name": "af-south-1"}
        assert kwargs["client_config"]["region_name"] == "af-south-1"
        assert kwargs["client_config"]["endpoint_url"] == "http://localhost:8000"
        assert kwargs["client_config"]["config"].read_timeout == 10
        assert kwargs["role_arn"] == ROLE_ARN

    def test_explicit_role_wins(self):
        provider = SessionProvider(service_role_map={"dynamodb": ROLE_ARN})

        kwargs = provider.build_client_kwargs("dynamodb", role_arn="arn:other")

        assert kwargs["role_arn"] == "arn:other"

    def test_empty_configuration(self):
        kwargs = SessionProvider().build_client_kwargs("dynamodb")

        assert kwargs == {"session_config": None, "client_config": None, "role_arn": None}

    @patch("infrastructure.clients.aws.session_provider.get_boto3_client")
    def test_get_boto3_client_passes_configuration(self, mock_get_client):
        provider = SessionProvider(region="af-south-1")

        client = provider.get_boto3_client("dynamodb")

        mock_get_client.assert_called_once_with(
            "dynamodb",
            session_config={"region_name": "af-south-1"},
            client_config={"region_name": "af-south-1"},
            role_arn=None,
        )
        assert client is mock_get_client.return_value
