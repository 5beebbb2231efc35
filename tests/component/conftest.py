"""
Component Test Layer Configuration

Structure:
    tests/component/
    └── dynamic_qr/   Components and facade against the in-memory repository

Usage:
    pytest tests/component -v
    pytest tests/component/dynamic_qr -v
"""
import os
import sys

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["EVENTS_ENABLED"] = "false"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
