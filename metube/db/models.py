from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from metube.core.db import Base


class ContainerKind(str, enum.Enum):
    mp4 = "mp4"
    webm = "webm"
    ogg = "ogg"


class Video(Base):
    __tablename__ = "videos"
    __table_args__ = (Index("ix_videos_upload_time", "upload_time"),)

    id: Mapped[str] = mapped_column(String(12), primary_key=True)
    path: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    artist: Mapped[str] = mapped_column(Text, default="", nullable=False)
    views: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    upload_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    container_kind: Mapped[ContainerKind] = mapped_column(Enum(ContainerKind), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    duration_s: Mapped[float] = mapped_column(Float, nullable=False)
    thumbnail_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)


__all__ = ["ContainerKind", "Video"]
