"""
VersionCompare Tests Package
============================
Test suite for the version comparison engine and its HTTP API.

Run all tests: python3 -m pytest tests/ -v
Run specific: python3 -m pytest tests/test_differ.py -v
"""

__version__ = "1.0.0"
