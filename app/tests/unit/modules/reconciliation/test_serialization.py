"""Unit tests for operation record serialization."""

import json
from datetime import datetime, timezone

import pytest

from modules.reconciliation.errors import SerializationError
from modules.reconciliation.models import SyncOperationStatus, SyncOperationType
from modules.reconciliation.serialization import (
    SCHEMA_VERSION,
    decode_operation,
    encode_operation,
    read_user_id,
)
from tests.factories.reconciliation import (
    DEFAULT_NOW,
    make_legacy_record,
    make_sync_operation,
    make_user_payload,
)


@pytest.mark.unit
class TestEncodeOperation:
    """Tests for encode_operation."""

    def test_envelope_is_versioned(self):
        """Records carry the schema version and snake_case fields."""
        document = json.loads(encode_operation(make_sync_operation()))

        assert document["schema_version"] == SCHEMA_VERSION
        assert document["user_id"] == "user-123"
        assert document["type"] == "UPDATE"
        assert document["status"] == "PENDING"
        assert document["created_at"].startswith("2024-01-15T12:00:00")

    def test_payload_datetimes_are_listed_explicitly(self):
        """Datetime payload values become ISO strings named in the envelope."""
        updated_at = datetime(2024, 1, 10, 8, 30, tzinfo=timezone.utc)
        operation = make_sync_operation(data=make_user_payload(updatedAt=updated_at))

        document = json.loads(encode_operation(operation))

        assert document["payload_datetime_fields"] == ["updatedAt"]
        assert document["data"]["updatedAt"] == "2024-01-10T08:30:00+00:00"

    def test_unserializable_payload_raises(self):
        """Values JSON cannot represent are rejected."""
        operation = make_sync_operation(data={"groups": object()})

        with pytest.raises(SerializationError) as exc_info:
            encode_operation(operation)

        assert exc_info.value.operation_id == operation.id


@pytest.mark.unit
class TestDecodeOperation:
    """Tests for decode_operation."""

    def test_decodes_current_version(self):
        """A record written by encode_operation decodes to an equal operation."""
        updated_at = datetime(2024, 1, 10, 8, 30, tzinfo=timezone.utc)
        operation = make_sync_operation(
            operation_type=SyncOperationType.CREATE,
            data=make_user_payload(updatedAt=updated_at),
            attempt=2,
            status=SyncOperationStatus.RETRYING,
            last_error="rate limit exceeded",
            started_at=DEFAULT_NOW,
        )

        decoded = decode_operation(encode_operation(operation))

        assert decoded == operation
        assert isinstance(decoded.data["updatedAt"], datetime)

    def test_decodes_delete_without_data(self):
        """DELETE records round through with data None."""
        operation = make_sync_operation(operation_type=SyncOperationType.DELETE)

        assert decode_operation(encode_operation(operation)).data is None

    def test_decodes_bytes(self):
        """Raw bytes from a non-decoding client are accepted."""
        operation = make_sync_operation()

        decoded = decode_operation(encode_operation(operation).encode("utf-8"))

        assert decoded.id == operation.id

    def test_upgrades_legacy_record(self):
        """Unversioned camelCase records decode through the upgrade path."""
        raw = json.dumps(
            make_legacy_record(attempt=1, max_attempts=3, last_error="timeout")
        )

        operation = decode_operation(raw)

        assert operation.user_id == "user-123"
        assert operation.type is SyncOperationType.UPDATE
        assert operation.attempt == 1
        assert operation.max_attempts == 3
        assert operation.last_error == "timeout"
        assert operation.created_at == DEFAULT_NOW
        assert operation.scheduled_for == DEFAULT_NOW
        assert operation.started_at is None

    def test_upgrades_legacy_delete(self):
        """Legacy DELETE records have no data key."""
        raw = json.dumps(make_legacy_record(operation_type="DELETE", priority=2))

        operation = decode_operation(raw)

        assert operation.type is SyncOperationType.DELETE
        assert operation.data is None
        assert operation.priority == 2

    def test_unknown_version_raises(self):
        """Records from a newer schema are rejected, not guessed at."""
        document = json.loads(encode_operation(make_sync_operation()))
        document["schema_version"] = 99

        with pytest.raises(SerializationError, match="Unsupported"):
            decode_operation(json.dumps(document))

    @pytest.mark.parametrize("raw", ["not json", "[1, 2, 3]", "null"])
    def test_malformed_json_raises(self, raw):
        """Non-object documents are rejected."""
        with pytest.raises(SerializationError):
            decode_operation(raw)

    def test_missing_fields_raise(self):
        """Records missing required fields are rejected with their id."""
        document = json.loads(encode_operation(make_sync_operation()))
        del document["user_id"]

        with pytest.raises(SerializationError) as exc_info:
            decode_operation(json.dumps(document))

        assert exc_info.value.operation_id == document["id"]

    def test_bad_payload_timestamp_raises(self):
        """A listed payload datetime that is not ISO-8601 is rejected."""
        document = json.loads(encode_operation(make_sync_operation()))
        document["payload_datetime_fields"] = ["email"]

        with pytest.raises(SerializationError, match="email"):
            decode_operation(json.dumps(document))


@pytest.mark.unit
class TestReadUserId:
    """Tests for read_user_id."""

    def test_current_record(self):
        """The user id is read from a current record."""
        raw = encode_operation(make_sync_operation(user_id="user-7"))

        assert read_user_id(raw) == "user-7"

    def test_legacy_record(self):
        """The camelCase user id of a legacy record is read too."""
        assert read_user_id(json.dumps({"userId": "user-8"})) == "user-8"

    def test_invalid_record_still_names_user(self):
        """Records that fail validation still report their user."""
        raw = json.dumps({"schema_version": 1, "user_id": "user-9", "type": "RENAME"})

        assert read_user_id(raw) == "user-9"

    @pytest.mark.parametrize("raw", ["{not json", "[]", '{"user_id": ""}', "{}"])
    def test_unreadable(self, raw):
        """Anything without a usable user id yields None."""
        assert read_user_id(raw) is None
