"""Downloads behind the signed URLs handed out for receipts and payment proofs."""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from backend.app.core.errors import NotFoundError, UnauthorizedError
from backend.app.core.storage import FileStorage, get_storage
from backend.app.db.session import get_db
from backend.app.models.file_metadata import FileMetadata

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{storage_key:path}")
async def download_file(
    storage_key: str,
    expires: int,
    signature: str,
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    if not storage.verify_signature(storage_key, expires, signature):
        raise UnauthorizedError("The download link is invalid or has expired.")

    file = db.query(FileMetadata).filter(FileMetadata.storage_key == storage_key).first()
    if file is None:
        raise NotFoundError("File not found.")
    try:
        path = storage.path_for(storage_key)
    except ValueError as exc:
        raise NotFoundError("File not found.") from exc
    if not path.exists():
        raise NotFoundError("File not found on disk.")

    return FileResponse(path=str(path), filename=file.file_name, media_type=file.content_type)
