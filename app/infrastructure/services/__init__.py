"""
Dependency injection services.

Provides application-scoped provider functions for the write path.
"""

from infrastructure.services.providers import (
    get_settings,
    get_document_store,
    get_idempotency_ledger,
    get_operation_executor,
    initialize_application,
    reset_providers,
)

__all__ = [
    "get_settings",
    "get_document_store",
    "get_idempotency_ledger",
    "get_operation_executor",
    "initialize_application",
    "reset_providers",
]
