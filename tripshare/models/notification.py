"""
Notification records created by the fan-out service.
"""

from sqlalchemy import Column, Integer, String, Boolean, JSON, Index

from tripshare.db.base import Base, TimestampMixin


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(String(128), nullable=False, index=True)
    actor_id = Column(String(128), nullable=False)
    actor_name = Column(String(255), nullable=True)
    type = Column(String(20), nullable=False, default="system")
    message = Column(String(1000), nullable=False)
    # `metadata` is reserved on declarative classes
    payload = Column("metadata", JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, recipient={self.recipient_id}, type={self.type})>"
