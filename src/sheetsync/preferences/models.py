"""Preference persistence model -- one row per stored key/value property.

Column preferences, header maps and team data are all stored as JSON text
under stable string keys (see preferences/keys.py), so a single table is
enough for every scope.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.sheetsync.core.database import Base


class PropertyModel(Base):
    """A persisted key/value property.

    The key is the primary key, so at most one value exists per key and an
    insert for an existing key fails with IntegrityError.
    """

    __tablename__ = "properties"

    key: Mapped[str] = mapped_column(String(500), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
