import logging
from datetime import datetime, timezone

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from relay.files.access import AccessPolicy
from relay.files.ids import handle_from_digest, is_valid_handle, timestamp_ns
from relay.files.models import StoredFile
from relay.files.outcomes import (
    AccessChecked, CapacityExceeded, CheckOutcome, Denied, Granted, HandleCollision,
    IngestOutcome, NotFound, PersistenceFailure, RetrieveOutcome, StoreInconsistency,
    Uploaded, ValidationFailed,
)
from relay.files.storage import BlobExists, BlobStore, PayloadTooLarge, safe_ext
from relay.files.store import (
    DuplicateHandle, count_files, get_by_handle, increment_download_count, insert_file,
)
from relay.shared.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MIME = "application/octet-stream"


def _rollback_blob(blobs: BlobStore, location: str) -> None:
    # best effort: the metadata write has already failed and is reported as such
    try:
        blobs.remove(location)
    except Exception:
        logger.error("Orphan blob left behind after failed insert: %s", location)


async def ingest_upload(db: Session, blobs: BlobStore, s: Settings, upload: UploadFile | None) -> IngestOutcome:
    """
    Store an uploaded file and return its new handle.

    Order of checks: file present, size (while streaming), capacity.
    Whatever was received is discarded on every failure path.
    """
    if upload is None or not upload.filename:
        return ValidationFailed("missing_file", "No file uploaded")

    try:
        staged = await blobs.stage(upload, s.MAX_FILE_SIZE)
    except PayloadTooLarge as e:
        logger.info("Rejected upload %r: over %d bytes", upload.filename, s.MAX_FILE_SIZE)
        return ValidationFailed("file_too_large", str(e))

    # approximate under concurrent uploads; see DESIGN.md
    try:
        existing = count_files(db)
    except SQLAlchemyError:
        logger.exception("Failed to count stored files")
        blobs.discard(staged)
        return PersistenceFailure("Failed to read file count")
    if existing >= s.MAX_TOTAL_FILES:
        logger.info("Rejected upload %r: storage full (%d files)", upload.filename, existing)
        blobs.discard(staged)
        return CapacityExceeded(s.MAX_TOTAL_FILES)

    stamp = timestamp_ns()
    handle = handle_from_digest(staged.digest, stamp)
    try:
        location = blobs.put(staged, handle + safe_ext(upload.filename))
    except BlobExists:
        logger.error("Handle collision on blob placement: %s", handle)
        blobs.discard(staged)
        return HandleCollision(handle)
    except OSError:
        logger.exception("Failed to place payload for %s", handle)
        blobs.discard(staged)
        return PersistenceFailure("Failed to store file")

    rec = StoredFile(
        handle=handle,
        filename=upload.filename,
        storage_path=location,
        size=staged.size,
        mime=upload.content_type or DEFAULT_MIME,
        uploaded_at=datetime.fromtimestamp(stamp / 1e9, tz=timezone.utc),
        download_count=0,
    )
    try:
        insert_file(db, rec)
    except DuplicateHandle:
        logger.error("Handle collision on metadata insert: %s", handle)
        _rollback_blob(blobs, location)
        return HandleCollision(handle)
    except SQLAlchemyError:
        logger.exception("Failed to save file metadata for %s", handle)
        _rollback_blob(blobs, location)
        return PersistenceFailure("Failed to save file metadata")

    logger.info("Stored %s (%d bytes)", handle, staged.size)
    return Uploaded(handle=handle, filename=rec.filename, size=rec.size)


def _lookup(db: Session, handle: str) -> StoredFile | ValidationFailed | NotFound | PersistenceFailure:
    if not is_valid_handle(handle):
        return ValidationFailed("invalid_handle", "Malformed file handle")
    try:
        rec = get_by_handle(db, handle)
    except SQLAlchemyError:
        logger.exception("Failed to read metadata for %s", handle)
        return PersistenceFailure("Failed to read file metadata")
    if rec is None:
        logger.debug("No file for handle %s", handle)
        return NotFound(handle)
    return rec


def check_access(db: Session, policy: AccessPolicy, handle: str, origin: str) -> CheckOutcome:
    """Lookup + policy only. Never touches the payload or the counter."""
    rec = _lookup(db, handle)
    if not isinstance(rec, StoredFile):
        return rec
    return AccessChecked(allowed=policy.allowed(origin), filename=rec.filename, size=rec.size)


def retrieve(db: Session, blobs: BlobStore, policy: AccessPolicy, handle: str, origin: str) -> RetrieveOutcome:
    rec = _lookup(db, handle)
    if not isinstance(rec, StoredFile):
        return rec

    if not policy.allowed(origin):
        logger.info("Denied download of %s to %s", handle, origin)
        return Denied(handle=handle, filename=rec.filename, size=rec.size)

    if not blobs.exists(rec.storage_path):
        logger.error("Store inconsistency: metadata for %s but payload %s is missing", handle, rec.storage_path)
        return StoreInconsistency(handle)

    # counted as soon as serving is attempted; a failure here must not block the download
    try:
        if not increment_download_count(db, handle):
            logger.warning("Download counter not updated for %s", handle)
    except Exception:
        logger.exception("Failed to increment download count for %s", handle)

    logger.info("Serving %s to %s", handle, origin)
    return Granted(
        handle=handle,
        filename=rec.filename,
        mime=rec.mime or DEFAULT_MIME,
        size=rec.size,
        path=blobs.get(rec.storage_path),
    )
