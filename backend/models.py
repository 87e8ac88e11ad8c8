from sqlalchemy import Column, String, DateTime, CheckConstraint
from datetime import datetime, timezone
from database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClipRecord(Base):
    """
    Persisted registry entry: clip name -> stored file id + emoji.

    The stored file name is a generated UUID (plus the upload's extension),
    never the user-supplied clip name. Re-uploading under an existing name
    replaces filename/emoji in place and keeps created_at, which is what the
    registry orders by.
    """
    __tablename__ = 'clips'

    name = Column(String, primary_key=True)
    filename = Column(String, nullable=False)
    emoji = Column(String, nullable=False, default='')
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("name != ''"),
    )

    def __repr__(self):
        return f"<ClipRecord name={self.name!r} filename={self.filename!r}>"
