"""ContentDraft ORM model — only the media columns the orchestrator writes.

Drafts are owned by the CRUD layer; this subsystem never creates or deletes
them, it only records the final media reference.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from genflow.database import Base
from genflow.models.generation_job import utcnow


class ContentDraft(Base):
    """A content draft awaiting (or holding) generated media."""

    __tablename__ = "content_drafts"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex,
    )
    content_type: Mapped[str] = mapped_column(String(50), nullable=False)

    media_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    media_engine: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    media_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    media_generated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
