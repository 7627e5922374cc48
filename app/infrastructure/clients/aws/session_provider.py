"""Session provider for AWS client operations.

Centralizes boto3 session creation, credential management, and client
configuration (region, endpoint, timeouts, retry budget) for the document
store. Handles role assumption for cross-account access.
"""

from typing import Any, Dict, Optional

import structlog
from botocore.client import BaseClient  # type: ignore

from infrastructure.clients.aws.client import build_botocore_config, get_boto3_client

logger = structlog.get_logger()


class SessionProvider:
    """Centralized provider for AWS session configuration and credential handling.

    Args:
        region: AWS region for all clients (e.g., 'af-south-1')
        service_role_map: Optional service name -> role ARN mapping
        endpoint_url: Custom endpoint URL (DynamoDB Local/LocalStack)
        connect_timeout: botocore connect timeout in seconds
        read_timeout: botocore read timeout in seconds
        max_attempts: botocore's own retry attempts
    """

    def __init__(
        self,
        region: Optional[str] = None,
        service_role_map: Optional[dict[str, str]] = None,
        endpoint_url: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        self.region = region
        self.service_role_map = service_role_map
        self.endpoint_url = endpoint_url
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_attempts = max_attempts

    def get_role_arn_for_service(self, service_name: str) -> Optional[str]:
        """Get the role ARN to assume for the given AWS service.

        Args:
            service_name: AWS service name (e.g., 'dynamodb')
        Returns:
            Role ARN string or None if no role is configured for the service
        """
        if self.service_role_map and service_name in self.service_role_map:
            return self.service_role_map[service_name]
        return None

    def build_client_kwargs(
        self,
        service_name: Optional[str] = None,
        role_arn: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build session and client configuration kwargs for boto3.

        Args:
            service_name: AWS service name (e.g., 'dynamodb') for role lookup
            role_arn: Optional cross-account role ARN to assume. If not provided,
                      attempts to resolve from service_role_map using service_name.

        Returns:
            Dict with session_config, client_config and role_arn for
            passing to get_boto3_client
        """
        if role_arn is None and service_name:
            role_arn = self.get_role_arn_for_service(service_name)

        session_config: Dict[str, Any] = {}
        client_config: Dict[str, Any] = {}

        if self.region:
            session_config["region_name"] = self.region
            client_config["region_name"] = self.region

        if self.endpoint_url:
            client_config["endpoint_url"] = self.endpoint_url

        botocore_config = build_botocore_config(
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            max_attempts=self.max_attempts,
        )
        if botocore_config is not None:
            client_config["config"] = botocore_config

        logger.debug(
            "built_client_kwargs",
            service_name=service_name,
            region=self.region,
            endpoint_url=self.endpoint_url,
            role_arn=role_arn,
        )
        return {
            "session_config": session_config or None,
            "client_config": client_config or None,
            "role_arn": role_arn,
        }

    def get_boto3_client(
        self, service_name: str, role_arn: Optional[str] = None
    ) -> BaseClient:
        """Get a fully-configured boto3 client for the given service.

        Args:
            service_name: AWS service name (e.g., 'dynamodb')
            role_arn: Optional cross-account role ARN to assume

        Returns:
            Configured boto3 client instance
        """
        kw = self.build_client_kwargs(service_name=service_name, role_arn=role_arn)
        return get_boto3_client(
            service_name,
            session_config=kw["session_config"],
            client_config=kw["client_config"],
            role_arn=kw["role_arn"],
        )
