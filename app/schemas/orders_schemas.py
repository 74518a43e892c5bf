from pydantic import BaseModel
from typing import List
from datetime import datetime


class PurchaseResponse(BaseModel):
    order_id: int
    book_id: int
    status: str
    download_url: str
    message: str


class LibraryItem(BaseModel):
    order_id: int
    book_id: int
    title: str
    price: int
    has_cover: bool
    purchased_at: datetime


class LibraryResponse(BaseModel):
    total: int
    items: List[LibraryItem]
