"""Factory for creating document stores based on configuration."""

from typing import TYPE_CHECKING, Optional

import structlog

from infrastructure.clients.aws.session_provider import SessionProvider
from infrastructure.persistence.dynamodb import DynamoDBDocumentStore
from infrastructure.persistence.memory import InMemoryDocumentStore
from infrastructure.persistence.unit_of_work import DocumentStore

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = structlog.get_logger()


def create_document_store(
    settings: "Settings", backend: Optional[str] = None
) -> DocumentStore:
    """Factory to create the document store selected by configuration.

    Args:
        settings: Settings instance
        backend: Optional backend override (memory, dynamodb).
                If None, uses settings.persistence.backend

    Returns:
        DocumentStore implementation

    Raises:
        ValueError: If unknown backend specified

    Examples:
        >>> store = create_document_store(settings)  # Uses settings.persistence.backend
        >>> store = create_document_store(settings, backend="memory")  # Force memory
    """
    backend = backend or settings.persistence.backend

    if backend == "memory":
        logger.info("creating_in_memory_document_store")
        return InMemoryDocumentStore()

    elif backend == "dynamodb":
        logger.info(
            "creating_dynamodb_document_store",
            region=settings.aws.AWS_REGION,
            endpoint_url=settings.aws.DYNAMODB_ENDPOINT_URL,
        )
        session_provider = SessionProvider(
            region=settings.aws.AWS_REGION,
            service_role_map=settings.aws.SERVICE_ROLE_MAP,
            endpoint_url=settings.aws.DYNAMODB_ENDPOINT_URL,
            connect_timeout=settings.persistence.connect_timeout_seconds,
            read_timeout=settings.persistence.read_timeout_seconds,
            max_attempts=settings.persistence.client_max_attempts,
        )
        return DynamoDBDocumentStore(session_provider=session_provider)

    else:
        raise ValueError(
            f"Unknown persistence backend: {backend}. Supported: memory, dynamodb"
        )
