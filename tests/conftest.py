"""
Root conftest.py - Global configuration for all test layers.

Test Layers (Top-Down TDD):
    - api/        : HTTP contract tests (FastAPI app in-process)
    - component/  : Component tests (in-memory repository, fake parser)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Configuration is read at import time by the service modules
os.environ.setdefault("ENV", "testing")


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "component: marks tests as component tests")
    config.addinivalue_line("markers", "api: marks tests as API tests")


def pytest_collection_modifyitems(config, items):
    """Mark tests by the layer directory they live in"""
    for item in items:
        path = str(item.path)
        for layer in ("unit", "component", "api"):
            if f"{os.sep}{layer}{os.sep}" in path:
                item.add_marker(getattr(pytest.mark, layer))
