"""Infrastructure settings __init__ - exports all infrastructure settings."""

from infrastructure.configuration.infrastructure.reconciliation import (
    ReconciliationSettings,
)

__all__ = [
    "ReconciliationSettings",
]
