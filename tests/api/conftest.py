"""
API Test Layer Configuration

Runs the FastAPI application in-process through Starlette's TestClient,
so the lifespan builds a fresh factory per client.

Usage:
    pytest tests/api -v                    # Run all API tests
    pytest tests/api -v -k "redirect"      # Run redirect API tests
"""

import os
import sys

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["ANALYTICS_ENABLED"] = "true"

# Add project root
sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)
