import asyncio

from relay.shared.limits import BodySizeLimit


async def _read_all(scope, receive, send):
    while True:
        message = await receive()
        if not message.get("more_body"):
            break
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"ok"})


def _run(mw, path="/api/upload", headers=(), chunks=10, chunk_size=1000):
    consumed = []
    sent = []
    pending = [b"x" * chunk_size for _ in range(chunks)]

    async def receive():
        chunk = pending.pop(0)
        consumed.append(len(chunk))
        return {"type": "http.request", "body": chunk, "more_body": bool(pending)}

    async def send(message):
        sent.append(message)

    scope = {"type": "http", "method": "POST", "path": path, "headers": list(headers)}
    asyncio.run(mw(scope, receive, send))
    return consumed, sent


def test_stops_reading_once_over_limit():
    consumed, sent = _run(BodySizeLimit(_read_all, path="/api/upload", max_body=2500))
    # third chunk crosses 2500 bytes; nothing after it is pulled
    assert len(consumed) == 3
    assert sent[0]["status"] == 413


def test_body_under_limit_passes():
    consumed, sent = _run(BodySizeLimit(_read_all, path="/api/upload", max_body=20000))
    assert len(consumed) == 10
    assert sent[0]["status"] == 200


def test_declared_length_rejected_before_reading():
    mw = BodySizeLimit(_read_all, path="/api/upload", max_body=2500)
    consumed, sent = _run(mw, headers=[(b"content-length", b"10000")])
    assert consumed == []
    assert sent[0]["status"] == 413


def test_other_paths_untouched():
    consumed, sent = _run(BodySizeLimit(_read_all, path="/api/upload", max_body=10), path="/api/other")
    assert len(consumed) == 10
    assert sent[0]["status"] == 200
