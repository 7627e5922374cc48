"""Infrastructure AWS clients public API.

The document store talks to DynamoDB through a boto3 client created by the
SessionProvider, which carries region, endpoint, timeouts and role assumption:

    from infrastructure.clients.aws import SessionProvider

    provider = SessionProvider(region="af-south-1", read_timeout=10)
    client = provider.get_boto3_client("dynamodb")
"""

from infrastructure.clients.aws.client import build_botocore_config, get_boto3_client
from infrastructure.clients.aws.session_provider import SessionProvider

__all__ = [
    "SessionProvider",
    "get_boto3_client",
    "build_botocore_config",
]
