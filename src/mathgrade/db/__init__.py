"""Persistence for the processing queue."""

from mathgrade.db.database import Base, create_session_factory, init_db
from mathgrade.db.models import ProcessingQueueRecord

__all__ = ['Base', 'create_session_factory', 'init_db', 'ProcessingQueueRecord']
