from mimetypes import guess_type

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from ..config import settings
from ..storage.blob_provider import BlobStorageProvider
from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/files", tags=["files"])


def get_storage() -> StorageProvider:
    """
    Get storage provider based on configuration.
    STORAGE_PROVIDER=blob uses Azure Blob Storage; anything else the local
    filesystem (development).
    """
    if settings.storage_provider == "blob":
        return BlobStorageProvider()
    return LocalStorageProvider()


@router.get("/local/{file_path:path}")
def serve_local_file(
    file_path: str,
    token: str = Query(...),
    storage: StorageProvider = Depends(get_storage),
):
    """Serve a file from local storage when the signed token matches."""
    if not isinstance(storage, LocalStorageProvider):
        # Blob downloads go straight to the SAS url
        raise HTTPException(status_code=404, detail="File not found")
    if not storage.verify(file_path, token):
        raise HTTPException(status_code=403, detail="Link expired or invalid")

    file_path_obj = storage._get_path(file_path)
    storage_base = storage.base_dir.resolve()
    if not str(file_path_obj.resolve()).startswith(str(storage_base)):
        raise HTTPException(status_code=403, detail="Access denied")
    if not file_path_obj.exists():
        raise HTTPException(status_code=404, detail="File not found")

    content_type = guess_type(str(file_path_obj))[0] or "application/octet-stream"
    return FileResponse(
        path=str(file_path_obj),
        media_type=content_type,
        filename=file_path_obj.name,
    )
