"""Idempotency ledger models."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from infrastructure.operations.errors import ValidationError


@dataclass(frozen=True)
class StoredResponse:
    """Response persisted in the ledger and returned verbatim on replay.

    Attributes:
        status_code: Status the original execution answered with
        body: JSON-compatible payload returned by the operation
    """

    status_code: int
    body: Any

    @classmethod
    def from_result(cls, body: Any, status_code: int = 200) -> "StoredResponse":
        """Build a stored response from an operation's return value.

        The body is normalized through JSON so the first response and every
        replay of it are identical (tuples become lists, keys become strings).

        Raises:
            ValidationError: If the body is not JSON-serializable
        """
        try:
            normalized = json.loads(json.dumps(body))
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"Operation result is not JSON-serializable: {exc}",
                error_code="RESPONSE_NOT_SERIALIZABLE",
            ) from exc
        return cls(status_code=status_code, body=normalized)

    def to_dict(self) -> Dict[str, Any]:
        return {"status_code": self.status_code, "body": self.body}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredResponse":
        return cls(status_code=int(data["status_code"]), body=data.get("body"))

    @classmethod
    def from_json(cls, text: str) -> "StoredResponse":
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class IdempotencyRecord:
    """A ledger entry: the first committed response for an idempotency key.

    Attributes:
        key: Client-supplied idempotency key
        response: Stored response
        created_at: When the record was written (UTC)
        expires_at: Epoch seconds after which the record is ignored, or None
    """

    key: str
    response: StoredResponse
    created_at: datetime
    expires_at: Optional[int] = None

    @classmethod
    def create(
        cls,
        key: str,
        response: StoredResponse,
        now: float,
        ttl_seconds: Optional[int] = None,
    ) -> "IdempotencyRecord":
        return cls(
            key=key,
            response=response,
            created_at=datetime.fromtimestamp(int(now), tz=timezone.utc),
            expires_at=int(now) + ttl_seconds if ttl_seconds else None,
        )

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def to_item(self, key_attribute: str = "idempotency_key") -> Dict[str, Any]:
        """Serialize to a ledger table item.

        Layout:
            idempotency_key: the key (partition key)
            response_json: stored response as JSON text
            created_at: epoch seconds
            ttl: epoch seconds, the store's TTL attribute
        """
        item: Dict[str, Any] = {
            key_attribute: self.key,
            "response_json": self.response.to_json(),
            "created_at": int(self.created_at.timestamp()),
            "operation_type": "api_response",
        }
        if self.expires_at is not None:
            item["ttl"] = self.expires_at
        return item

    @classmethod
    def from_item(
        cls, item: Dict[str, Any], key_attribute: str = "idempotency_key"
    ) -> "IdempotencyRecord":
        """Parse a ledger table item.

        Raises:
            KeyError / ValueError / TypeError: If the item is malformed
        """
        expires_at = item.get("ttl")
        return cls(
            key=item[key_attribute],
            response=StoredResponse.from_json(item["response_json"]),
            created_at=datetime.fromtimestamp(int(item["created_at"]), tz=timezone.utc),
            expires_at=int(expires_at) if expires_at is not None else None,
        )
