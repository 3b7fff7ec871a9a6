"""Versioned (de)serialization of sync operation records.

Records are stored as JSON envelopes carrying a ``schema_version``:

    {
        "schema_version": 1,
        "id": "1700000000000-3fa85f64a1b2",
        "user_id": "user-123",
        "type": "UPDATE",
        "data": {"email": "a@example.com", "updated_at": "2024-01-01T00:00:00+00:00"},
        "payload_datetime_fields": ["updated_at"],
        "attempt": 0,
        ...
    }

Timestamps are ISO-8601 strings. Payload datetimes are listed explicitly in
``payload_datetime_fields`` (top-level payload keys only) instead of being
tagged inline, so the payload itself stays plain JSON.

Records written before versioning (no ``schema_version``, camelCase keys such
as ``userId`` and ``scheduledFor``) are upgraded on read. Payload values in
those records are returned as stored.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_core import PydanticSerializationError

from modules.reconciliation.errors import InvalidOperationError, SerializationError
from modules.reconciliation.models import (
    SyncOperation,
    SyncOperationStatus,
    SyncOperationType,
)

SCHEMA_VERSION = 1


class OperationRecordV1(BaseModel):
    """Schema version 1 of a stored operation record."""

    model_config = ConfigDict(extra="ignore")

    schema_version: Literal[1] = 1
    id: str
    user_id: str
    type: SyncOperationType
    data: Optional[Dict[str, Any]] = None
    payload_datetime_fields: List[str] = Field(default_factory=list)
    attempt: int = 0
    max_attempts: int
    created_at: datetime
    scheduled_for: datetime
    started_at: Optional[datetime] = None
    last_error: Optional[str] = None
    status: SyncOperationStatus = SyncOperationStatus.PENDING
    priority: int = 0


class LegacyOperationRecord(BaseModel):
    """Unversioned camelCase record layout."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    user_id: str = Field(alias="userId")
    type: SyncOperationType
    data: Optional[Dict[str, Any]] = None
    attempt: int = 0
    max_attempts: int = Field(default=5, alias="maxAttempts")
    created_at: datetime = Field(alias="createdAt")
    scheduled_for: datetime = Field(alias="scheduledFor")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    status: SyncOperationStatus = SyncOperationStatus.PENDING
    priority: int = 0


def _encode_payload(
    data: Optional[Dict[str, Any]],
) -> Tuple[Optional[Dict[str, Any]], List[str]]:
    if data is None:
        return None, []
    encoded: Dict[str, Any] = {}
    datetime_fields: List[str] = []
    for key, value in data.items():
        if isinstance(value, datetime):
            encoded[key] = value.isoformat()
            datetime_fields.append(key)
        else:
            encoded[key] = value
    return encoded, datetime_fields


def _decode_payload(
    data: Optional[Dict[str, Any]], datetime_fields: List[str], operation_id: str
) -> Optional[Dict[str, Any]]:
    if data is None:
        return None
    decoded = dict(data)
    for key in datetime_fields:
        value = decoded.get(key)
        if value is None:
            continue
        try:
            decoded[key] = datetime.fromisoformat(value)
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Payload field '{key}' is not an ISO-8601 timestamp",
                operation_id=operation_id,
            ) from e
    return decoded


def encode_operation(operation: SyncOperation) -> str:
    """Serialize an operation to the current schema version.

    Raises:
        SerializationError: If the payload holds values JSON cannot represent
    """
    data, datetime_fields = _encode_payload(operation.data)
    record = OperationRecordV1(
        id=operation.id,
        user_id=operation.user_id,
        type=operation.type,
        data=data,
        payload_datetime_fields=datetime_fields,
        attempt=operation.attempt,
        max_attempts=operation.max_attempts,
        created_at=operation.created_at,
        scheduled_for=operation.scheduled_for,
        started_at=operation.started_at,
        last_error=operation.last_error,
        status=operation.status,
        priority=operation.priority,
    )
    try:
        return record.model_dump_json()
    except PydanticSerializationError as e:
        raise SerializationError(
            f"Operation payload is not serializable: {e}",
            operation_id=operation.id,
        ) from e


def _from_v1(record: OperationRecordV1) -> SyncOperation:
    return SyncOperation(
        id=record.id,
        user_id=record.user_id,
        type=record.type,
        data=_decode_payload(record.data, record.payload_datetime_fields, record.id),
        attempt=record.attempt,
        max_attempts=record.max_attempts,
        created_at=record.created_at,
        scheduled_for=record.scheduled_for,
        started_at=record.started_at,
        last_error=record.last_error,
        status=record.status,
        priority=record.priority,
    )


def _from_legacy(record: LegacyOperationRecord) -> SyncOperation:
    return SyncOperation(
        id=record.id,
        user_id=record.user_id,
        type=record.type,
        data=record.data,
        attempt=record.attempt,
        max_attempts=record.max_attempts,
        created_at=record.created_at,
        scheduled_for=record.scheduled_for,
        last_error=record.last_error,
        status=record.status,
        priority=record.priority,
    )


def read_user_id(raw: Union[str, bytes]) -> Optional[str]:
    """Best-effort user id of a record that may not decode as an operation."""
    try:
        document = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(document, dict):
        return None
    user_id = document.get("user_id", document.get("userId"))
    if isinstance(user_id, str) and user_id:
        return user_id
    return None


def decode_operation(raw: Union[str, bytes]) -> SyncOperation:
    """Deserialize a stored operation record of any known schema version.

    Raises:
        SerializationError: If the record is malformed or its version unknown
    """
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Operation record is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise SerializationError("Operation record must be a JSON object")

    operation_id = document.get("id")
    version = document.get("schema_version")

    try:
        if version is None:
            return _from_legacy(LegacyOperationRecord.model_validate(document))
        if version == SCHEMA_VERSION:
            return _from_v1(OperationRecordV1.model_validate(document))
    except (ValidationError, InvalidOperationError) as e:
        raise SerializationError(
            f"Invalid operation record: {e}", operation_id=operation_id
        ) from e

    raise SerializationError(
        f"Unsupported operation schema version: {version!r}",
        operation_id=operation_id,
    )
