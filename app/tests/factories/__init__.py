"""Test data factories for deterministic test data generation."""

from tests.factories.reconciliation import (
    FakeClock,
    make_legacy_record,
    make_sync_operation,
    make_user_payload,
)

__all__ = [
    "FakeClock",
    "make_legacy_record",
    "make_sync_operation",
    "make_user_payload",
]
