"""
Shared fixtures for TaskHub tests.

Provides an isolated temporary SQLite database per test, test settings, and a
FastAPI TestClient wired to both.
"""

import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

project_root = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(project_root))

from taskhub.api import create_app
from taskhub.config import Settings
from taskhub.database import TaskDatabase


@pytest.fixture
def db_path():
    """Path to a unique temporary database file, removed afterwards."""
    tmp_file = tempfile.NamedTemporaryFile(delete=False, suffix='.db', prefix='test_taskhub_')
    tmp_file.close()
    # An empty file is a fresh database; SQLite creates the schema inside it.
    path = tmp_file.name
    yield path
    for suffix in ("", "-wal", "-shm"):
        Path(path + suffix).unlink(missing_ok=True)


@pytest.fixture
def settings(db_path):
    return Settings.model_validate({
        "app": {"name": "test-app", "version": "1.0.0", "port": 8080, "environment": "test"},
        "database": {"type": "sqlite", "path": db_path},
        "security": {"cors_enabled": True, "cors_origins": ["http://localhost:3000"]},
    })


@pytest.fixture
def database(settings):
    db = TaskDatabase(settings.database.path)
    yield db
    db.close()


@pytest.fixture
def client(settings, database):
    app = create_app(settings, database)
    return TestClient(app)
