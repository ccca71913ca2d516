"""SQL tables backing the "sql" storage backend."""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from dockboard.database import Base


JsonBody = JSON().with_variant(JSONB(), "postgresql")


class StoredDocument(Base):
    """
    Whole-document storage.
    One row per document name ("state", "analytics").
    """
    __tablename__ = "dockboard_documents"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    body: Mapped[dict] = mapped_column(JsonBody, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class HistoryRecord(Base):
    """
    Capped history table.
    `seq` gives insertion order; the newest HISTORY_LIMIT rows are kept.
    """
    __tablename__ = "dockboard_history"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    trailer_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    body: Mapped[dict] = mapped_column(JsonBody, nullable=False)
