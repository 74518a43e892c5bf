import mimetypes
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlmodel import Session, select

from app.database import get_session
from app.models.book import Book
from app.models.user import User
from app.schemas.book_schemas import BookDetail, BookList, BookResponse, BookSearchResults
from app.schemas.user_schemas import Principal
from app.services.entitlements import owns_book
from app.services.file_store import FileStore, get_file_store
from app.utils.token import get_optional_principal

router = APIRouter()

LATEST_LIMIT = 25


def _book_query():
    return select(Book, User.name).join(User, User.id == Book.author_id)


def _to_response(book: Book, author_name: Optional[str]) -> BookResponse:
    return BookResponse(
        id=book.id,
        title=book.title,
        description=book.description,
        price=book.price,
        author_id=book.author_id,
        author_name=author_name or "",
        has_cover=book.has_cover,
        created_at=book.created_at,
    )


@router.get("", response_model=BookList)
def latest_books(session: Session = Depends(get_session)):
    rows = session.exec(
        _book_query().order_by(Book.created_at.desc(), Book.id.desc()).limit(LATEST_LIMIT)
    ).all()

    books = [_to_response(book, name) for book, name in rows]
    return BookList(total=len(books), books=books)


@router.get("/search", response_model=BookSearchResults, summary="Search books by title or description")
def search_books(
    q: str = Query("", description="Search term for title or description"),
    session: Session = Depends(get_session)
):
    q = q.strip()
    books = []

    if q:
        rows = session.exec(
            _book_query()
            .where(Book.title.ilike(f"%{q}%") | Book.description.ilike(f"%{q}%"))
            .order_by(Book.created_at.desc(), Book.id.desc())
        ).all()
        books = [_to_response(book, name) for book, name in rows]

    return BookSearchResults(query=q, total=len(books), books=books)


@router.get("/{book_id}", response_model=BookDetail)
def book_detail(
    book_id: int,
    session: Session = Depends(get_session),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    row = session.exec(_book_query().where(Book.id == book_id)).first()
    if not row:
        raise HTTPException(404, "Book not found")

    book, author_name = row
    owns = owns_book(session, principal.user_id if principal else None, book.id)

    return BookDetail(**_to_response(book, author_name).model_dump(), owns=owns)


@router.get("/{book_id}/cover")
def book_cover(
    book_id: int,
    session: Session = Depends(get_session),
    files: FileStore = Depends(get_file_store),
):
    book = session.get(Book, book_id)
    if not book or not book.cover_key:
        raise HTTPException(404, "Cover not found")

    try:
        data = files.get_bytes(book.cover_key)
    except FileNotFoundError:
        raise HTTPException(404, "Cover not found")

    media_type = mimetypes.guess_type(book.cover_key)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)
