"""
Clip repository for registry persistence.
"""

from typing import List

from sqlalchemy.orm import Session

from models import ClipRecord, utc_now
from .base_repository import BaseRepository


class ClipRepository(BaseRepository[ClipRecord]):
    """Repository for ClipRecord operations."""

    def __init__(self, db: Session):
        super().__init__(db, ClipRecord, key_column='name')

    def get_ordered(self) -> List[ClipRecord]:
        """
        Get all clips in registry order (first registration first).

        Returns:
            List of clip records
        """
        return self.db.query(self.model).order_by(
            self.model.created_at.asc(),
            self.model.name.asc()
        ).all()

    def upsert(self, name: str, filename: str, emoji: str) -> ClipRecord:
        """
        Insert a clip or replace the stored file/emoji of an existing one,
        committing in a single transaction.

        Args:
            name: Clip name (primary key)
            filename: Stored file name inside the sound directory
            emoji: Display emoji, may be empty

        Returns:
            The persisted record
        """
        record = self.get_by_key(name)
        if record is None:
            record = ClipRecord(name=name, filename=filename, emoji=emoji)
            self.db.add(record)
        else:
            record.filename = filename
            record.emoji = emoji
            record.updated_at = utc_now()
        self.commit()
        return record
