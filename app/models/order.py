from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime, UniqueConstraint
from typing import Optional
from datetime import datetime, timezone

from app.constants.order_status import PAID


class Order(SQLModel, table=True):
    """Entitlement record: one row per (buyer, book), not a financial ledger."""

    __table_args__ = (
        UniqueConstraint("buyer_id", "book_id", name="uq_order_buyer_book"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    buyer_id: int = Field(foreign_key="user.id", index=True)
    book_id: int = Field(foreign_key="book.id", index=True)

    status: str = Field(default=PAID)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
