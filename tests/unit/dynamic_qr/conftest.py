"""
Unit Test Fixtures for Dynamic QR Service

Pure-function tests need no repository; fixtures only hand out the
data contract factory.
"""

import pytest

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.dynamic_qr.data_contract import DynamicQRTestDataFactory


@pytest.fixture
def factory():
    """Provide test data factory"""
    return DynamicQRTestDataFactory()


@pytest.fixture
def code_id(factory):
    return factory.make_code_id()
