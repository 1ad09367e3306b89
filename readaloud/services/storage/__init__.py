"""
Storage module - Record store and object storage operations.
"""

from readaloud.services.storage.database import (
    Base,
    close_db,
    get_engine,
    get_session,
    init_db,
    reset_engine,
)
from readaloud.services.storage.models_db import Recording
from readaloud.services.storage.object_store import (
    MinioStorage,
    ObjectStorage,
    create_object_storage,
)
from readaloud.services.storage.repository import RecordingRepository

__all__ = [
    "Base",
    "MinioStorage",
    "ObjectStorage",
    "Recording",
    "RecordingRepository",
    "close_db",
    "create_object_storage",
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
]
