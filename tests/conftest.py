from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from accessdemo.config import Settings
from accessdemo.database import Database
from accessdemo.service import create_app

USER = ("user@example.com", "password123")
ADMIN = ("admin@example.com", "admin123")
ALICE = ("alice@example.com", "alice123")


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "accessdemo.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def client(database: Database) -> Iterator[TestClient]:
    app = create_app(database=database, settings=Settings())
    with TestClient(app) as test_client:
        yield test_client
