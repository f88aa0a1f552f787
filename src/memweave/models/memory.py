from typing import Optional
from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel
from memweave.models.base import now_epoch


class MemoryRecord(SQLModel, table=True):
    __tablename__ = "memories"

    id: str = Field(primary_key=True)
    memory_type: str = Field(default="general", index=True)  # command, edit, search, ...
    content: str = ""
    embedding: Optional[bytes] = Field(default=None)  # packed float32, JSON text in older rows
    meta: str = Field(default="{}", sa_column=Column("metadata", Text, default="{}"))
    timestamp: int = Field(default_factory=now_epoch, index=True)


class Trajectory(SQLModel, table=True):
    __tablename__ = "trajectories"

    id: str = Field(primary_key=True)
    state: Optional[str] = None
    action: Optional[str] = None
    outcome: Optional[str] = None
    reward: Optional[float] = None
    steps: Optional[str] = None  # JSON list of {"action", "reward"}
    timestamp: int = Field(default_factory=now_epoch, index=True)
