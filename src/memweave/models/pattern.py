from typing import Optional
from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel
from memweave.models.base import TimestampMixin, now_epoch


class NeuralPattern(TimestampMixin, table=True):
    __tablename__ = "neural_patterns"

    id: str = Field(primary_key=True)  # derived, e.g. "filetype:.ts"
    content: str = ""
    category: str = Field(default="general", index=True)
    confidence: float = 0.5
    usage: int = 1
    embedding: Optional[bytes] = Field(default=None)
    meta: str = Field(default="{}", sa_column=Column("metadata", Text, default="{}"))


class CompressedPattern(SQLModel, table=True):
    __tablename__ = "compressed_patterns"

    id: str = Field(primary_key=True)
    layer: str = Field(unique=True)  # "neural-<pattern id>"
    data: Optional[bytes] = Field(default=None)
    compression_ratio: float = 1.0
    created_at: int = Field(default_factory=now_epoch)
    meta: str = Field(default="{}", sa_column=Column("metadata", Text, default="{}"))
