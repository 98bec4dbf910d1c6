"""Shared fixtures for WhereShot tests."""
from datetime import datetime
import time

import pytest


# Fixed evaluation clock so plausibility bounds don't drift with the calendar
NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Create application for testing with a throwaway upload folder."""
    from config import TestingConfig
    from whereshot import create_app

    monkeypatch.setattr(TestingConfig, 'UPLOAD_FOLDER', tmp_path / 'uploads')
    app = create_app('testing')
    yield app


@pytest.fixture
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture
def temp_dir(tmp_path):
    return tmp_path


@pytest.fixture
def new_york_time(monkeypatch):
    """Run the test with the process local time set to America/New_York."""
    if not hasattr(time, 'tzset'):
        pytest.skip('time.tzset is not available on this platform')

    monkeypatch.setenv('TZ', 'America/New_York')
    time.tzset()
    if 'EST' not in time.tzname:
        monkeypatch.undo()
        time.tzset()
        pytest.skip('America/New_York zone data is not installed')

    yield

    monkeypatch.undo()
    time.tzset()
