"""Shared fixtures."""

import pytest

from replybot.services import TrackingStore, open_database


@pytest.fixture
async def db(tmp_path):
    database = await open_database(tmp_path / "replybot.db")
    yield database
    await database.close()


@pytest.fixture
async def store(db):
    return TrackingStore(db)
