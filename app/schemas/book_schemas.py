from pydantic import BaseModel
from typing import List
from datetime import datetime


class BookResponse(BaseModel):
    id: int
    title: str
    description: str
    price: int
    author_id: int
    author_name: str
    has_cover: bool
    created_at: datetime


class BookDetail(BookResponse):
    owns: bool = False


class BookList(BaseModel):
    total: int
    books: List[BookResponse]


class BookSearchResults(BookList):
    query: str
