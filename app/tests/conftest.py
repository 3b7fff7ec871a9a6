import sys
from pathlib import Path

# Ensure the application package root is on sys.path so importing application
# modules (e.g. `modules.reconciliation`) works during pytest collection.
# Pytest may import `conftest` before the project root is on sys.path
# depending on invocation; add it explicitly before importing application
# modules.
project_root = str(Path(__file__).resolve().parents[1])
if project_root not in sys.path:
    sys.path.insert(0, project_root)

import pytest
from infrastructure.metrics import InMemoryMetricsCollector


@pytest.fixture
def metrics():
    """Fresh in-memory metrics collector."""
    return InMemoryMetricsCollector()
