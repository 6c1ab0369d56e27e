from __future__ import annotations

from pathlib import Path

import pytest

from aide.storage.database import Database


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "aide.db")
    database.open()
    yield database
    database.close()
