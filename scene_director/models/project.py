from datetime import datetime, UTC

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(UTC)


class ProjectRecord(SQLModel, table=True):
    """已保存的项目快照（整个 ProjectState 序列化为 JSON）"""

    __tablename__ = "project"

    id: str = Field(primary_key=True)
    name: str = ""
    owner_id: str | None = Field(default=None, index=True)
    state_json: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
