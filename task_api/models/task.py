import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, LargeBinary
from sqlalchemy.dialects import mysql
from ..core.database import Base


def generate_task_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(Base):
    """Task model for database"""
    __tablename__ = "tasks"

    id = Column(String(32), primary_key=True, default=generate_task_id)
    description = Column(Text, nullable=False)
    completed = Column(Boolean, default=False, nullable=False, index=True)

    # Owner is the authenticated caller's id, set once at creation
    owner = Column(Integer, nullable=False, index=True)

    # PNG bytes, see services.images. Re-encoded uploads outgrow MySQL's
    # 64 KB BLOB, so MySQL gets LONGBLOB
    image = Column(LargeBinary().with_variant(mysql.LONGBLOB(), "mysql"), nullable=True)

    # Timestamps are set client side so creation order survives
    # second-resolution database clocks
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    def __repr__(self):
        return f"<Task(id={self.id}, owner={self.owner}, completed={self.completed})>"
