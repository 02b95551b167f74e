"""
Tests package for bskyview

This package contains all unit tests.

Test organization:
- test_session.py: Tests for login, token expiry and session refresh
- test_client.py: Tests for the profile -> post lookup client (over a fake SDK client)
- test_formatters.py: Tests for rendering posts as text
- test_types.py: Tests for at:// URIs and bsky.app links
- test_config.py: Tests for config loading and credentials
- test_bskyview.py: Tests for the command-line caller
- conftest.py: Shared fixtures and test utilities
"""

__version__ = "1.0.0"
