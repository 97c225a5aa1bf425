"""Fixtures for UI tests."""

import pytest

PROJECT_OPTIONS = [
    ("BuddyPress Business Profile", "100"),
    ("buddypress-checkins-pro", "200"),
    ("Legacy Site", "300"),
]


@pytest.fixture
def project_options():
    """Dropdown options as the app builds them: (name, str(id))."""
    return list(PROJECT_OPTIONS)
