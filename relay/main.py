import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from relay.files import models as files_models  # noqa: F401  (registers the table)
from relay.files.access import AccessPolicy
from relay.files.api import router as files_router
from relay.files.storage import LocalBlobStore
from relay.shared.config import Settings, settings as default_settings
from relay.shared.db import Base, make_engine, make_session_factory
from relay.shared.limits import BodySizeLimit
from relay.shared.logging_config import setup_logging

logger = logging.getLogger(__name__)

# room for multipart boundaries and part headers on top of the payload
MULTIPART_OVERHEAD = 64 * 1024

TAGS_METADATA = [
    {"name": "Files", "description": "Upload, access check and download"},
    {"name": "Health", "description": "Service health"},
]


def create_app(s: Settings | None = None) -> FastAPI:
    s = s or default_settings

    app = FastAPI(
        title="File Relay",
        version="0.1.0",
        description="Upload a file, get a handle, download it from an allowed network.",
        openapi_tags=TAGS_METADATA,
    )

    engine = make_engine(s.database_url)
    app.state.settings = s
    app.state.engine = engine
    app.state.SessionLocal = make_session_factory(engine)
    app.state.blobs = LocalBlobStore(s.UPLOAD_DIR)
    # bad ranges fail here, at startup, not per request
    app.state.policy = AccessPolicy.from_settings(s)

    @app.on_event("startup")
    def _init_storage():
        setup_logging(s.LOG_LEVEL)
        Path(s.DATABASE_PATH).resolve().parent.mkdir(parents=True, exist_ok=True)
        app.state.blobs.ensure_dirs()
        Base.metadata.create_all(bind=engine)
        logger.info(
            "File relay ready: %d allowed ranges, allow_all=%s, max %d files of %d bytes",
            len(app.state.policy.ranges), s.ALLOW_ALL_IPS, s.MAX_TOTAL_FILES, s.MAX_FILE_SIZE,
        )

    @app.on_event("shutdown")
    def _close_db():
        engine.dispose()

    # stops oversized uploads while they stream in, with or without Content-Length
    app.add_middleware(BodySizeLimit, path="/api/upload", max_body=s.MAX_FILE_SIZE + MULTIPART_OVERHEAD)

    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "ok"}

    app.include_router(files_router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("relay.main:app", host="0.0.0.0", port=default_settings.PORT)
