"""Metadata store: one ``StoredFile`` row per handle.

Each call commits (or rolls back) its own unit of work so a row becomes
visible to readers only once it is fully written.
"""
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from relay.files.models import StoredFile

logger = logging.getLogger(__name__)


class DuplicateHandle(Exception):
    """Raised when a handle is already taken by another row."""

    def __init__(self, handle: str) -> None:
        self.handle = handle
        super().__init__(f"Handle already exists: {handle}")


def insert_file(db: Session, rec: StoredFile) -> StoredFile:
    """Insert ``rec`` atomically.

    Raises:
        DuplicateHandle: if the handle is taken; nothing is written.
        SQLAlchemyError: on any other persistence failure; nothing is written.
    """
    db.add(rec)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateHandle(rec.handle) from e
    except Exception:
        db.rollback()
        raise
    return rec


def get_by_handle(db: Session, handle: str) -> StoredFile | None:
    return db.scalars(select(StoredFile).where(StoredFile.handle == handle)).first()


def increment_download_count(db: Session, handle: str) -> bool:
    # single UPDATE so concurrent increments on one row serialize in the database
    try:
        res = db.execute(
            update(StoredFile)
            .where(StoredFile.handle == handle)
            .values(download_count=StoredFile.download_count + 1)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return res.rowcount == 1


def count_files(db: Session) -> int:
    return db.scalar(select(func.count()).select_from(StoredFile)) or 0
