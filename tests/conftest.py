from __future__ import annotations

import pytest

import db


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Fresh SQLite file per test."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "redline.db")
    db.init_db()
    return db.DB_FILE
