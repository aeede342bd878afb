import pytest

from relay.files.models import StoredFile
from relay.files.store import (
    DuplicateHandle, count_files, get_by_handle, increment_download_count, insert_file,
)
from relay.shared.db import Base, make_engine, make_session_factory


@pytest.fixture
def SessionLocal(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'meta.db'}")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


def _rec(handle="a" * 24, **kw):
    base = dict(handle=handle, filename="a.txt", storage_path=handle + ".txt", size=10, mime="text/plain")
    base.update(kw)
    return StoredFile(**base)


def test_insert_and_get(SessionLocal):
    with SessionLocal() as db:
        insert_file(db, _rec())
    with SessionLocal() as db:
        row = get_by_handle(db, "a" * 24)
        assert row.filename == "a.txt"
        assert row.size == 10
        assert row.download_count == 0
        assert row.uploaded_at is not None


def test_missing_handle_is_none(SessionLocal):
    with SessionLocal() as db:
        assert get_by_handle(db, "f" * 24) is None


def test_duplicate_handle_rejected(SessionLocal):
    with SessionLocal() as db:
        insert_file(db, _rec(filename="first.txt"))
    with SessionLocal() as db:
        with pytest.raises(DuplicateHandle):
            insert_file(db, _rec(filename="second.txt"))
        # session still usable after the failed insert
        assert count_files(db) == 1
    with SessionLocal() as db:
        assert get_by_handle(db, "a" * 24).filename == "first.txt"


def test_increment(SessionLocal):
    with SessionLocal() as db:
        insert_file(db, _rec())
        assert increment_download_count(db, "a" * 24)
        assert increment_download_count(db, "a" * 24)
    with SessionLocal() as db:
        assert get_by_handle(db, "a" * 24).download_count == 2


def test_increment_unknown_handle(SessionLocal):
    with SessionLocal() as db:
        assert increment_download_count(db, "b" * 24) is False


def test_count_files(SessionLocal):
    with SessionLocal() as db:
        assert count_files(db) == 0
        insert_file(db, _rec("a" * 24))
        insert_file(db, _rec("b" * 24))
        assert count_files(db) == 2


def test_rows_survive_new_engine(tmp_path):
    url = f"sqlite:///{tmp_path / 'persist.db'}"
    engine = make_engine(url)
    Base.metadata.create_all(bind=engine)
    with make_session_factory(engine)() as db:
        insert_file(db, _rec())
    engine.dispose()

    engine = make_engine(url)
    with make_session_factory(engine)() as db:
        assert get_by_handle(db, "a" * 24) is not None
    engine.dispose()


def test_insert_does_not_touch_row_after_commit(SessionLocal, monkeypatch):
    # a committed row must be reported as inserted, whatever happens afterwards
    with SessionLocal() as db:
        def boom(*a, **kw):
            raise AssertionError("no post-commit reload expected")

        monkeypatch.setattr(db, "refresh", boom)
        rec = insert_file(db, _rec())
        assert rec.handle == "a" * 24
