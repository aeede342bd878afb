from fastapi import APIRouter, Depends, File as Upload, Request, UploadFile
from fastapi.responses import FileResponse, PlainTextResponse
from sqlalchemy.orm import Session

from relay.files.access import AccessPolicy, resolve_origin
from relay.files.outcomes import (
    AccessChecked, CapacityExceeded, Denied, Granted, HandleCollision, NotFound,
    PersistenceFailure, StoreInconsistency, Uploaded, ValidationFailed,
)
from relay.files.schemas import CheckOut, UploadOut
from relay.files.service import check_access, ingest_upload, retrieve
from relay.files.storage import BlobStore
from relay.shared.config import Settings
from relay.shared.db import get_db
from relay.shared.http import err

router = APIRouter(prefix="/api", tags=["Files"])

_VALIDATION_STATUS = {"missing_file": 400, "file_too_large": 413, "invalid_handle": 400}


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_blobs(request: Request) -> BlobStore:
    return request.app.state.blobs


def get_policy(request: Request) -> AccessPolicy:
    return request.app.state.policy


def client_origin(request: Request, s: Settings = Depends(get_settings)) -> str:
    peer = request.client.host if request.client else None
    return resolve_origin(request.headers, peer, trust_proxy=s.TRUST_PROXY_HEADERS)


def _fail(outcome):
    """Map a non-success pipeline outcome onto an HTTP error."""
    if isinstance(outcome, ValidationFailed):
        err(outcome.message, code=outcome.code, status=_VALIDATION_STATUS.get(outcome.code, 400))
    if isinstance(outcome, NotFound):
        err("File not found", code="not_found", status=404)
    if isinstance(outcome, CapacityExceeded):
        err(f"Storage limit reached. Maximum {outcome.limit} files allowed.", code="capacity_exceeded", status=507)
    if isinstance(outcome, HandleCollision):
        err("Handle collision, please retry the upload", code="handle_collision", status=409)
    if isinstance(outcome, StoreInconsistency):
        err("File payload is missing", code="payload_missing", status=500)
    if isinstance(outcome, PersistenceFailure):
        err(outcome.message, code="persistence_failure", status=500)
    raise TypeError(f"Unexpected outcome: {outcome!r}")


@router.post("/upload", response_model=UploadOut)
async def upload_file(
    file: UploadFile | None = Upload(None),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blobs),
    s: Settings = Depends(get_settings),
):
    out = await ingest_upload(db, blobs, s, file)
    if not isinstance(out, Uploaded):
        _fail(out)
    return {"hash": out.handle, "filename": out.filename, "size": out.size}


@router.get("/download/{handle}/check", response_model=CheckOut)
def download_check(
    handle: str,
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_policy),
    origin: str = Depends(client_origin),
):
    out = check_access(db, policy, handle, origin)
    if not isinstance(out, AccessChecked):
        _fail(out)
    return {"allowed": out.allowed, "file_info": {"filename": out.filename, "size": out.size}}


@router.get("/download/{handle}")
def download(
    handle: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blobs),
    policy: AccessPolicy = Depends(get_policy),
    origin: str = Depends(client_origin),
):
    out = retrieve(db, blobs, policy, handle, origin)
    if isinstance(out, Denied):
        return PlainTextResponse(
            "This file can only be downloaded from an allowed network.\n"
            f"File: {out.filename}\n"
            f"Size: {out.size / 1024:.2f} KB\n",
            status_code=403,
        )
    if not isinstance(out, Granted):
        _fail(out)
    return FileResponse(
        path=out.path,
        media_type=out.mime,
        filename=out.filename,
    )
