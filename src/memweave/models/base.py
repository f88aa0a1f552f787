import time
from sqlmodel import Field, SQLModel


def now_epoch() -> int:
    return int(time.time())


class TimestampMixin(SQLModel):
    created_at: int = Field(default_factory=now_epoch, nullable=False)
    updated_at: int = Field(default_factory=now_epoch, nullable=False)
