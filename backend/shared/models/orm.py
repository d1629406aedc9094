"""
SQLAlchemy 2.0 ORM model for the database cache backend.
One row per scope key; the payload is the JSON-serialised fixture snapshot.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class CachedEntryORM(Base):
    __tablename__ = "cached_entries"

    scope_key: Mapped[str] = mapped_column(String(128), primary_key=True)
    scope_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    scope_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    written_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_cached_entries_scope_date", "scope_date"),
        Index("ix_cached_entries_scope_kind", "scope_kind"),
    )
