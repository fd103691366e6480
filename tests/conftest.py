"""
Pytest configuration for stackdash tests.

This module provides shared fixtures and configuration for all tests.
"""

import os

import pytest


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "posix_only: needs a POSIX shell and process groups"
    )


def pytest_collection_modifyitems(config, items):
    if os.name == "posix":
        return
    skip = pytest.mark.skip(reason="requires a POSIX shell")
    for item in items:
        if "posix_only" in item.keywords:
            item.add_marker(skip)
