"""SQLAlchemy models for owners and their activity types."""
from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base

DEFAULT_ICON = "⭐"


def new_id() -> str:
    return str(uuid.uuid4())


activity_type_friends = Table(
    "activity_type_friends",
    Base.metadata,
    Column("activity_type_id", String(36), ForeignKey("activity_types.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    activity_types = relationship(
        "ActivityType",
        back_populates="owner",
        cascade="all",
        foreign_keys="ActivityType.owner_id",
    )


class ActivityType(Base):
    __tablename__ = "activity_types"
    __table_args__ = (
        UniqueConstraint("owner_id", "order_num", name="uq_activity_type_owner_order"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False, default="")
    icon = Column(String(100), nullable=False, default=DEFAULT_ICON)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    order_num = Column(Integer, nullable=False)
    is_pinned = Column(Boolean, nullable=False, default=False)

    owner = relationship("User", back_populates="activity_types", foreign_keys=[owner_id])
    associated_friends = relationship("User", secondary=activity_type_friends, lazy="selectin")

    @property
    def associated_friend_ids(self) -> list[str]:
        return [friend.id for friend in self.associated_friends or []]

    def __repr__(self) -> str:
        return f"<ActivityType {self.title!r} owner={self.owner_id} order={self.order_num} pinned={self.is_pinned}>"
