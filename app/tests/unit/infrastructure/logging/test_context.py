"""Unit tests for infrastructure.logging.context module.

Tests cover:
- bind_operation_context() context manager
- get_correlation_id()
- clear_operation_context()
- Context isolation between concurrent tasks
"""

import asyncio
import uuid

import pytest
import structlog

from infrastructure.logging.context import (
    bind_operation_context,
    clear_operation_context,
    get_correlation_id,
)


@pytest.fixture(autouse=True)
def _clean_context():
    clear_operation_context()
    yield
    clear_operation_context()


@pytest.mark.unit
class TestBindOperationContext:
    """Test suite for bind_operation_context context manager."""

    def test_auto_generates_correlation_id(self):
        """Correlation ID is auto-generated if not provided."""
        with bind_operation_context(operation_id="1705320000000-0123456789ab"):
            correlation_id = get_correlation_id()
            assert correlation_id is not None
            uuid.UUID(correlation_id)

    def test_uses_provided_correlation_id(self):
        """Provided correlation ID is used instead of generating one."""
        with bind_operation_context(correlation_id="tick-42"):
            assert get_correlation_id() == "tick-42"

    def test_binds_operation_fields(self):
        """Operation id, user id and type are bound."""
        with bind_operation_context(
            operation_id="1705320000000-0123456789ab",
            user_id="user-123",
            operation_type="UPDATE",
        ):
            ctx = structlog.contextvars.get_contextvars()
            assert ctx["operation_id"] == "1705320000000-0123456789ab"
            assert ctx["user_id"] == "user-123"
            assert ctx["operation_type"] == "UPDATE"

    def test_omits_unset_fields(self):
        """None values are not bound."""
        with bind_operation_context(user_id="user-123"):
            ctx = structlog.contextvars.get_contextvars()
            assert "operation_id" not in ctx
            assert "operation_type" not in ctx

    def test_binds_extra_context(self):
        """Extra keyword arguments are bound."""
        with bind_operation_context(attempt=2, worker="w-1"):
            ctx = structlog.contextvars.get_contextvars()
            assert ctx["attempt"] == 2
            assert ctx["worker"] == "w-1"

    def test_unbinds_on_exit(self):
        """Context is removed after the block."""
        with bind_operation_context(operation_id="op-1", user_id="user-1"):
            pass

        ctx = structlog.contextvars.get_contextvars()
        assert "operation_id" not in ctx
        assert get_correlation_id() is None

    def test_unbinds_on_exception(self):
        """Context is removed even when the block raises."""
        with pytest.raises(RuntimeError):
            with bind_operation_context(operation_id="op-1"):
                raise RuntimeError("adapter failed")

        assert "operation_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_concurrent_tasks_are_isolated(self):
        """Each task sees only the operation it is executing."""
        seen = {}

        async def _execute(operation_id):
            with bind_operation_context(operation_id=operation_id):
                await asyncio.sleep(0.01)
                seen[operation_id] = structlog.contextvars.get_contextvars()[
                    "operation_id"
                ]

        await asyncio.gather(_execute("op-1"), _execute("op-2"), _execute("op-3"))

        assert seen == {"op-1": "op-1", "op-2": "op-2", "op-3": "op-3"}


@pytest.mark.unit
class TestClearOperationContext:
    """Test suite for clear_operation_context."""

    def test_clears_everything(self):
        """All bound values are dropped."""
        structlog.contextvars.bind_contextvars(operation_id="op-1", correlation_id="c")

        clear_operation_context()

        assert structlog.contextvars.get_contextvars() == {}
        assert get_correlation_id() is None
