"""AWS integration settings."""

from typing import Optional

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class AwsSettings(IntegrationSettings):
    """AWS configuration settings.

    Environment Variables:
        AWS_REGION: AWS region for services (default: af-south-1)
        DYNAMODB_ENDPOINT_URL: Custom DynamoDB endpoint (DynamoDB Local, LocalStack)
        DYNAMODB_ROLE_ARN: Optional role to assume for DynamoDB access

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        region = settings.aws.AWS_REGION
        endpoint = settings.aws.DYNAMODB_ENDPOINT_URL
        ```
    """

    AWS_REGION: str = Field(default="af-south-1", alias="AWS_REGION")
    DYNAMODB_ENDPOINT_URL: Optional[str] = Field(
        default=None, alias="DYNAMODB_ENDPOINT_URL"
    )
    DYNAMODB_ROLE_ARN: Optional[str] = Field(default=None, alias="DYNAMODB_ROLE_ARN")

    @property
    def SERVICE_ROLE_MAP(self) -> dict[str, str]:
        """Mapping of service names to their associated role ARNs.

        Returns:
            Dict mapping service identifiers to role ARNs
        """
        if not self.DYNAMODB_ROLE_ARN:
            return {}
        return {"dynamodb": self.DYNAMODB_ROLE_ARN}
