"""
FastAPI dependencies shared by the route modules.

Clients are created in the application lifespan and kept on ``app.state``;
routes resolve them here so tests can swap them via
``app.dependency_overrides``.
"""

from fastapi import Depends, Request

from readaloud.services.storage.object_store import ObjectStorage
from readaloud.services.upload import UploadService


def get_storage(request: Request) -> ObjectStorage:
    """Return the object storage client owned by the running application."""
    return request.app.state.storage


def get_upload_service(storage: ObjectStorage = Depends(get_storage)) -> UploadService:
    return UploadService(storage)
