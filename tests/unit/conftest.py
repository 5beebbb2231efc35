"""
Unit Test Layer Configuration

Structure:
    tests/unit/
    └── dynamic_qr/   Hashing, matchers, schedule windows, models

Usage:
    pytest tests/unit -v                 # All unit tests
    pytest tests/unit -m unit -v         # By marker
"""
import os
import sys

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
