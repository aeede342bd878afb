"""Public handle generation.

A handle is the SHA-256 of the payload followed by the decimal upload
timestamp, truncated to ``HANDLE_LENGTH`` lowercase hex characters.
Uniqueness is ultimately enforced by the metadata store, not here.
"""
import re
import time
from hashlib import sha256

HANDLE_LENGTH = 24
HANDLE_RE = re.compile(rf"[0-9a-f]{{{HANDLE_LENGTH}}}")


def timestamp_ns() -> int:
    return time.time_ns()


def handle_from_digest(h, stamp: int) -> str:
    """Finish a running payload digest with the timestamp salt.

    ``h`` is left untouched so callers may keep hashing if they need to.
    """
    salted = h.copy()
    salted.update(str(stamp).encode("ascii"))
    return salted.hexdigest()[:HANDLE_LENGTH]


def handle_for(payload: bytes, stamp: int) -> str:
    return handle_from_digest(sha256(payload), stamp)


def is_valid_handle(value: str) -> bool:
    return bool(HANDLE_RE.fullmatch(value or ""))
