from fastapi.testclient import TestClient

from relay.files.store import get_by_handle

ALLOWED_IP = "10.1.2.3"
BLOCKED_IP = "203.0.113.9"


def upload(c: TestClient, data: bytes, name: str = "a.txt", mime: str = "text/plain"):
    return c.post("/api/upload", files={"file": (name, data, mime)})


def from_ip(ip: str) -> dict:
    return {"X-Forwarded-For": ip}


def row_for(c: TestClient, handle: str):
    db = c.app.state.SessionLocal()
    try:
        return get_by_handle(db, handle)
    finally:
        db.close()


def stored_blobs(c: TestClient) -> list:
    root = c.app.state.blobs.root
    return sorted(p.name for p in root.iterdir() if p.is_file())


def staged_blobs(c: TestClient) -> list:
    return list(c.app.state.blobs.staging.iterdir())
