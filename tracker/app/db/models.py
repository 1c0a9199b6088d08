from datetime import datetime

from sqlalchemy import DateTime, Index, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from tracker.app.db.base import Base


class CacheRecord(Base):
    """One persisted cache value per storage key.

    Attendance keys look like ``attendance:{institution}:{user_id}:{session_id}``.
    """

    __tablename__ = "cache_entries"
    __table_args__ = (Index("idx_cache_entries_expires", "expires_at"),)

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    # NULL means the row never expires at the backend level
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
