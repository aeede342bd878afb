"""Blob store for uploaded payloads.

Payloads are first streamed into a staging area, then placed under their
final name in a single step. A placed blob is never overwritten.
"""
import logging
import os
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from hashlib import sha256
from pathlib import Path
from typing import Any

from fastapi import UploadFile

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
_EXT_RE = re.compile(r"^\.[A-Za-z0-9]{1,16}$")


class PayloadTooLarge(Exception):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"File too large. Max {limit} bytes")


class BlobExists(Exception):
    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(f"Blob already exists: {location}")


@dataclass
class StagedBlob:
    """A fully received payload waiting to be placed."""

    token: str
    size: int
    digest: Any  # running sha256 over the payload bytes


def safe_ext(filename: str) -> str:
    ext = Path(filename or "").suffix
    return ext.lower() if _EXT_RE.match(ext) else ""


class BlobStore(ABC):
    @abstractmethod
    async def stage(self, upload: UploadFile, max_bytes: int) -> StagedBlob:
        """Stream ``upload`` into staging, hashing as it goes.

        Raises PayloadTooLarge (after discarding the partial data) as soon as
        more than ``max_bytes`` have been received.
        """

    @abstractmethod
    def discard(self, staged: StagedBlob) -> None: ...

    @abstractmethod
    def put(self, staged: StagedBlob, name: str) -> str:
        """Place a staged payload under ``name`` and return its location.

        Raises BlobExists if ``name`` is already taken; the staged payload is
        left in place for the caller to discard.
        """

    @abstractmethod
    def get(self, location: str) -> Path:
        """Local file holding the payload at ``location``.

        Remote backends are expected to fetch into a local cache first.
        """

    @abstractmethod
    def exists(self, location: str) -> bool: ...

    @abstractmethod
    def remove(self, location: str) -> None: ...


class LocalBlobStore(BlobStore):
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()
        self.staging = self.root / ".staging"

    def ensure_dirs(self) -> None:
        self.staging.mkdir(parents=True, exist_ok=True)

    def _path(self, location: str) -> Path:
        # locations are bare names generated by us; reject anything else
        if not location or Path(location).name != location or location.startswith("."):
            raise ValueError(f"Invalid blob location: {location!r}")
        return self.root / location

    def _staged_path(self, staged: StagedBlob) -> Path:
        return self.staging / staged.token

    async def stage(self, upload: UploadFile, max_bytes: int) -> StagedBlob:
        self.ensure_dirs()
        staged = StagedBlob(token=uuid.uuid4().hex, size=0, digest=sha256())
        target = self._staged_path(staged)
        try:
            with target.open("wb") as out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    staged.size += len(chunk)
                    if staged.size > max_bytes:
                        raise PayloadTooLarge(max_bytes)
                    staged.digest.update(chunk)
                    out.write(chunk)
        except BaseException:
            # oversize, aborted connection or cancellation: nothing may remain
            target.unlink(missing_ok=True)
            raise
        finally:
            await upload.close()
        return staged

    def discard(self, staged: StagedBlob) -> None:
        self._staged_path(staged).unlink(missing_ok=True)

    def put(self, staged: StagedBlob, name: str) -> str:
        src = self._staged_path(staged)
        dst = self._path(name)
        try:
            # link() refuses to replace an existing file, unlike rename()
            os.link(src, dst)
        except FileExistsError as e:
            raise BlobExists(name) from e
        src.unlink(missing_ok=True)
        return name

    def get(self, location: str) -> Path:
        return self._path(location)

    def exists(self, location: str) -> bool:
        try:
            return self._path(location).is_file()
        except ValueError:
            return False

    def remove(self, location: str) -> None:
        try:
            self._path(location).unlink(missing_ok=True)
        except Exception:
            logger.exception("Failed to remove blob %s", location)
            raise
