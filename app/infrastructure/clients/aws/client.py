"""Base AWS client utilities for infrastructure clients.

Provides `get_boto3_client`. This module intentionally avoids reading
settings at import time and accepts configuration via parameters.
"""

from typing import Any, Dict, Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.config import Config  # type: ignore
import structlog

logger = structlog.get_logger()


def build_botocore_config(
    connect_timeout: Optional[float] = None,
    read_timeout: Optional[float] = None,
    max_attempts: Optional[int] = None,
) -> Optional[Config]:
    """Build a botocore Config carrying timeouts and the client retry budget.

    Args:
        connect_timeout: Seconds to wait for a connection
        read_timeout: Seconds to wait for a response
        max_attempts: botocore's own retry attempts ("standard" mode)

    Returns:
        botocore Config, or None when nothing is configured
    """
    config_kwargs: Dict[str, Any] = {}
    if connect_timeout is not None:
        config_kwargs["connect_timeout"] = connect_timeout
    if read_timeout is not None:
        config_kwargs["read_timeout"] = read_timeout
    if max_attempts is not None:
        config_kwargs["retries"] = {"max_attempts": max_attempts, "mode": "standard"}

    if not config_kwargs:
        return None
    return Config(**config_kwargs)


def get_boto3_client(
    service_name: str,
    session_config: Optional[Dict[str, Any]] = None,
    client_config: Optional[Dict[str, Any]] = None,
    role_arn: Optional[str] = None,
    session_name: str = "OperationExecutorSession",
) -> BaseClient:
    """Create a boto3 client for the given service.

    Args:
        service_name: AWS service name (e.g., 'dynamodb')
        session_config: Optional boto3 session kwargs (e.g., region_name)
        client_config: Optional client kwargs (e.g., endpoint_url, config)
        role_arn: Optional role to assume for cross-account access
        session_name: Name for assumed role session

    Returns:
        botocore client instance
    """
    session_config = session_config or {}
    client_config = client_config or {}

    if role_arn:
        sts = boto3.client("sts")
        assumed = sts.assume_role(RoleArn=role_arn, RoleSessionName=session_name)
        creds = assumed["Credentials"]
        session = boto3.Session(
            aws_access_key_id=creds["AccessKeyId"],
            aws_secret_access_key=creds["SecretAccessKey"],
            aws_session_token=creds["SessionToken"],
            **session_config,
        )
        logger.debug("assumed_role_for_client", service=service_name, role_arn=role_arn)
    else:
        session = boto3.Session(**session_config)

    return session.client(service_name, **client_config)
