"""Test utilities for wren applications.

Provides a test client and descriptor assertions::

    from wren.testing import TestClient, assert_status
"""

from wren.testing.assertions import assert_header, assert_json, assert_status, decoded_body
from wren.testing.client import TestClient

__all__ = [
    "TestClient",
    "assert_header",
    "assert_json",
    "assert_status",
    "decoded_body",
]
