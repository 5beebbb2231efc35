"""
Dynamic QR Service Contract Module

This module contains:
- data_contract.py: model re-exports and test data factories
"""
