# relay/shared/limits.py
import logging

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from relay.shared.http import error_body

logger = logging.getLogger(__name__)


class BodyTooLarge(HTTPException):
    def __init__(self, limit: int) -> None:
        super().__init__(status_code=413, detail=error_body(f"Request body too large. Max {limit} bytes", "file_too_large"))


class BodySizeLimit:
    """
    ASGI middleware capping the request body of one POST route.

    A declared Content-Length over the cap is refused before anything is read.
    Otherwise body bytes are counted as they arrive and reading stops with 413
    as soon as the cap is passed, so chunked uploads are never buffered whole.
    """

    def __init__(self, app, path: str, max_body: int) -> None:
        self.app = app
        self.path = path
        self.max_body = max_body

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["method"] != "POST" or scope["path"] != self.path:
            await self.app(scope, receive, send)
            return

        declared = dict(scope["headers"]).get(b"content-length", b"")
        if declared.isdigit() and int(declared) > self.max_body:
            logger.info("Rejected %s: declared length %s", self.path, declared.decode())
            await self._reject(scope, receive, send)
            return

        received = 0
        started = False

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body:
                    # HTTPException passes through FastAPI's body parsing unchanged
                    raise BodyTooLarge(self.max_body)
            return message

        async def tracking_send(message):
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except BodyTooLarge:
            if started:
                raise
            logger.info("Rejected %s: body passed %d bytes", self.path, self.max_body)
            await self._reject(scope, receive, send)

    async def _reject(self, scope, receive, send):
        exc = BodyTooLarge(self.max_body)
        await JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})(scope, receive, send)
