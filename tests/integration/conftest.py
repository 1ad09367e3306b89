"""Integration test fixtures for ReadAloud.

Provides an async HTTP client bound to the FastAPI app with an in-memory
SQLite database and an in-memory object store.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from readaloud.api.app import create_app
from readaloud.services.storage import database


@pytest.fixture
def app(memory_storage):
    """Create a fresh FastAPI application instance."""
    return create_app(storage=memory_storage)


@pytest.fixture
async def async_client(app, db_engine):
    """AsyncClient backed by the in-memory test engine.

    Injects the test engine into the database module so that all routes
    use the same in-memory SQLite with tables already created.
    """
    database._engine = db_engine
    database._session_factory = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    database.reset_engine()
