"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import json
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (full lesson flows)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def sample_lesson_path():
    """Path to the multi-block sample lesson."""
    return FIXTURES_DIR / "sample_lesson.json"


@pytest.fixture
def sample_lesson_raw(sample_lesson_path):
    """The sample lesson as raw LMS JSON."""
    return json.loads(sample_lesson_path.read_text(encoding="utf-8"))


@pytest.fixture
def sample_lesson(sample_lesson_path):
    """The sample lesson, parsed."""
    from exercise_engine.lesson import load_lesson_file

    return load_lesson_file(sample_lesson_path)


@pytest.fixture
def rng():
    """Seeded random source for reproducible shuffles."""
    return random.Random(1234)


@pytest.fixture
def settings():
    """Settings that ignore any local .env file."""
    from config import Settings

    return Settings(
        _env_file=None,
        record_attempt_timeout_seconds=0.5,
        feedback_timeout_seconds=0.5,
        default_feedback_message="Well done.",
        shuffle_seed=7,
    )
