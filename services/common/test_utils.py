"""
Common test utilities for service test suites.

Provides a base class with HTTP call detection rakes so a test fails loudly
if service code reaches out to the network, while FastAPI's TestClient keeps
working.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient


class BaseIntegrationTest:
    """Base class for tests that must not make real outbound HTTP calls."""

    def setup_method(self, method=None):
        """Start the HTTP call detection patches."""
        self.http_patches = [
            # Async httpx is what service code would use for outbound calls
            patch(
                "httpx.AsyncClient._send_single_request",
                side_effect=AssertionError(
                    "Real HTTP call detected! AsyncClient._send_single_request was called"
                ),
            ),
            patch(
                "urllib.request.urlopen",
                side_effect=AssertionError(
                    "Real HTTP call detected! urllib.request.urlopen was called"
                ),
            ),
            # Note: httpx.Client.send is left alone because TestClient uses it
        ]

        for http_patch in self.http_patches:
            http_patch.start()

    def teardown_method(self, method=None):
        """Stop all patches."""
        for http_patch in self.http_patches:
            http_patch.stop()

    def create_test_client(self, app):
        """Create a FastAPI test client for the given app."""
        return TestClient(app)
