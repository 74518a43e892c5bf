from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime
from typing import Optional
from datetime import datetime, timezone


class Book(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    author_id: int = Field(foreign_key="user.id", index=True)

    title: str
    description: str = Field(default="")

    # minor currency units
    price: int = Field(default=0, ge=0)

    # Opaque file store keys, never shown to readers
    pdf_key: str
    cover_key: Optional[str] = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )

    @property
    def has_cover(self) -> bool:
        return self.cover_key is not None
