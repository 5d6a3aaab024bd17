"""Database models for mathgrade."""

import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from mathgrade.core.models import QueueStatus
from mathgrade.db.database import Base, utcnow


class ProcessingQueueRecord(Base):
    """A submission waiting for, undergoing or done with grading."""
    __tablename__ = "processing_queue"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    submission_id = Column(String, nullable=False, index=True)
    project_id = Column(String, nullable=False, index=True)

    # Higher runs first
    priority = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default=QueueStatus.PENDING.value, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)

    # Lock
    locked_at = Column(DateTime, nullable=True)
    locked_by = Column(String, nullable=True)

    result_id = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_processing_queue_pick", "status", "priority", "created_at"),
        Index("ix_processing_queue_locked_at", "status", "locked_at"),
    )

    def __repr__(self):
        return f"<ProcessingQueueRecord id={self.id} submission_id={self.submission_id} status={self.status}>"
