from typing import Optional
from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel, UniqueConstraint
from memweave.models.base import now_epoch


class Edge(SQLModel, table=True):
    __tablename__ = "edges"
    __table_args__ = (
        UniqueConstraint("source", "target", name="unique_edge_per_pair"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    source: str = Field(index=True)
    target: str = Field(index=True)
    type: str = Field(default="temporal", index=True)
    weight: float = 1.0
    data: str = "{}"  # JSON metadata


class Agent(SQLModel, table=True):
    __tablename__ = "agents"

    id: str = Field(primary_key=True)
    name: str = Field(unique=True)
    type: str = "unknown"
    status: str = "active"
    created_at: int = Field(default_factory=now_epoch)
    last_seen: Optional[int] = None
    meta: str = Field(default="{}", sa_column=Column("metadata", Text, default="{}"))


class Stat(SQLModel, table=True):
    __tablename__ = "stats"

    key: str = Field(primary_key=True)
    value: str
    updated_at: int = Field(default_factory=now_epoch)
