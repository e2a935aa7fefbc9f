"""Shared fixtures."""

import pytest

from skvk_screens.models import Book, Track
from skvk_screens.services import DatabaseService, PlaybackService


@pytest.fixture
def tracks():
    return [
        Track(id="t1", title="Aarti Sangam", subtitle="Morning"),
        Track(id="t2", title="Bhajan", subtitle="Evening"),
    ]


@pytest.fixture
def books():
    return [
        Book(id="b1", title="Bhagavad Gita", available_languages=["en", "hi", "te"]),
        Book(id="b2", title="Ramayana"),
        Book(id="b3", title="Vishnu Sahasranamam", language="te"),
    ]


@pytest.fixture
def db(tmp_path):
    service = DatabaseService(str(tmp_path / "test.db"))
    yield service
    service.close()


@pytest.fixture
def playback():
    return PlaybackService()
