"""Result variants returned by the ingestion and retrieval pipelines.

Callers branch on the variant type instead of catching exceptions.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class Uploaded:
    handle: str
    filename: str
    size: int


@dataclass(frozen=True)
class AccessChecked:
    allowed: bool
    filename: str
    size: int


@dataclass(frozen=True)
class Granted:
    handle: str
    filename: str
    mime: str
    size: int
    path: Path


@dataclass(frozen=True)
class ValidationFailed:
    code: str  # missing_file | file_too_large | invalid_handle
    message: str


@dataclass(frozen=True)
class CapacityExceeded:
    limit: int


@dataclass(frozen=True)
class NotFound:
    handle: str


@dataclass(frozen=True)
class Denied:
    handle: str
    filename: str
    size: int


@dataclass(frozen=True)
class StoreInconsistency:
    handle: str


@dataclass(frozen=True)
class PersistenceFailure:
    message: str


@dataclass(frozen=True)
class HandleCollision:
    handle: str


IngestOutcome = Union[Uploaded, ValidationFailed, CapacityExceeded, HandleCollision, PersistenceFailure]
CheckOutcome = Union[AccessChecked, ValidationFailed, NotFound, PersistenceFailure]
RetrieveOutcome = Union[Granted, ValidationFailed, NotFound, Denied, StoreInconsistency, PersistenceFailure]
