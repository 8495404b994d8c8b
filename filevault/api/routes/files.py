from datetime import datetime
from typing import BinaryIO, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from starlette.responses import StreamingResponse

from filevault.api.deps import get_registry, http_error, require_auth
from filevault.core.errors import FileVaultError
from filevault.services.blobstore import CHUNK_SIZE
from filevault.services.registry import FileRecord, Registry

router = APIRouter(dependencies=[Depends(require_auth)])

class FileOut(BaseModel):
    name: str
    size: int
    isPublic: bool
    publicId: Optional[str] = None
    createdAt: datetime

    @classmethod
    def from_record(cls, r: FileRecord) -> "FileOut":
        return cls(name=r.name, size=r.size, isPublic=r.is_public, publicId=r.public_token, createdAt=r.created_at)

def _iter_file(fh: BinaryIO):
    with fh:
        while True:
            chunk = fh.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk

def attachment_response(record: FileRecord, fh: BinaryIO) -> StreamingResponse:
    """Stream an opened file back as a download named after its record."""
    filename = record.name.rsplit("/", 1)[-1]
    quoted = quote(filename)
    if quoted != filename:
        disposition = f"attachment; filename*=utf-8''{quoted}"
    else:
        disposition = f'attachment; filename="{filename}"'
    headers = {
        "Content-Disposition": disposition,
        "Content-Length": str(record.size),
    }
    return StreamingResponse(_iter_file(fh), media_type="application/octet-stream", headers=headers)

def _require_name(file: str) -> str:
    if not file:
        raise HTTPException(status_code=400, detail="File parameter is required")
    return file

@router.post("/upload")
def upload(file: UploadFile = File(...), registry: Registry = Depends(get_registry)):
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded.")
    try:
        record = registry.upload(file.filename, file.file)
    except FileVaultError as e:
        raise http_error(e)
    return {"status": "success", "filename": record.name, "size": record.size}

@router.get("/list", response_model=List[FileOut], response_model_exclude_none=True)
def list_files(registry: Registry = Depends(get_registry)):
    return [FileOut.from_record(r) for r in registry.list()]

@router.get("/download")
def download(file: str = "", registry: Registry = Depends(get_registry)):
    try:
        record, fh = registry.open(_require_name(file))
    except FileVaultError as e:
        raise http_error(e)
    return attachment_response(record, fh)

@router.post("/share")
def share(file: str = Form(""), registry: Registry = Depends(get_registry)):
    name = _require_name(file)
    try:
        token = registry.share(name)
    except FileVaultError as e:
        raise http_error(e)
    return {"status": "success", "filename": name, "publicId": token, "url": f"/public/{token}"}

@router.post("/unshare")
def unshare(file: str = Form(""), registry: Registry = Depends(get_registry)):
    name = _require_name(file)
    try:
        registry.unshare(name)
    except FileVaultError as e:
        raise http_error(e)
    return {"status": "success", "filename": name}

@router.post("/delete")
def delete(file: str = Form(""), registry: Registry = Depends(get_registry)):
    name = _require_name(file)
    try:
        registry.delete(name)
    except FileVaultError as e:
        raise http_error(e)
    return {"status": "success", "filename": name}
