from datetime import datetime, timezone
from sqlalchemy import String, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from relay.shared.db import Base


class StoredFile(Base):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    handle: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    # display only, never used to build a path
    filename: Mapped[str] = mapped_column(String(255))
    storage_path: Mapped[str] = mapped_column(Text)  # blob store location, internal
    size: Mapped[int] = mapped_column(Integer)
    mime: Mapped[str] = mapped_column(String(127), default="application/octet-stream")

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    download_count: Mapped[int] = mapped_column(Integer, default=0)
