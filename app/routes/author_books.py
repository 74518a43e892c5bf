from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.models.user import User
from app.schemas.book_schemas import BookResponse
from app.schemas.user_schemas import Principal
from app.services.file_store import FileStore, get_file_store
from app.services.publishing import UploadedFile, publish_book
from app.utils.token import get_current_principal

router = APIRouter()


def _read_upload(upload: Optional[UploadFile], limit: int) -> Optional[UploadedFile]:
    """Read at most ``limit + 1`` bytes; one extra byte is enough to reject an oversize file."""
    if upload is None or not upload.filename:
        return None

    return UploadedFile(
        filename=upload.filename,
        content_type=upload.content_type or "",
        data=upload.file.read(limit + 1),
    )


@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
def create_book(
    title: str = Form(...),
    description: str = Form(""),
    price: int = Form(0),
    pdf: UploadFile = File(None),
    cover: UploadFile = File(None),

    session: Session = Depends(get_session),
    files: FileStore = Depends(get_file_store),
    principal: Principal = Depends(get_current_principal),
):
    book = publish_book(
        session,
        principal,
        title=title,
        description=description,
        price=price,
        pdf=_read_upload(pdf, settings.max_pdf_bytes),
        cover=_read_upload(cover, settings.max_cover_bytes),
        files=files,
    )

    author = session.get(User, book.author_id)

    return BookResponse(
        id=book.id,
        title=book.title,
        description=book.description,
        price=book.price,
        author_id=book.author_id,
        author_name=author.name if author else "",
        has_cover=book.has_cover,
        created_at=book.created_at,
    )
