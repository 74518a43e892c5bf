import io
import logging
import os
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from pypdf import PdfReader
from sqlmodel import Session

from app.config import settings
from app.models.book import Book
from app.schemas.user_schemas import Principal
from app.services.errors import EncodingError, Forbidden, InvalidUpload, Unauthenticated
from app.services.file_store import FileStore
from app.services.watermark import check_renderable

logger = logging.getLogger(__name__)

PDF_EXTENSIONS = {".pdf"}
COVER_EXTENSIONS = {".png", ".jpg", ".jpeg"}


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename or "")[1].lower()


def validate_pdf(upload: Optional[UploadedFile], max_bytes: int):
    if upload is None or not upload.data:
        raise InvalidUpload("PDF is required")

    if upload.extension not in PDF_EXTENSIONS or upload.content_type != "application/pdf":
        raise InvalidUpload("Invalid PDF file")

    if len(upload.data) > max_bytes:
        raise InvalidUpload("PDF too large")

    if not upload.data.startswith(b"%PDF-"):
        raise InvalidUpload("Invalid PDF file")

    try:
        pages = len(PdfReader(io.BytesIO(upload.data)).pages)
    except Exception as e:
        raise InvalidUpload("PDF could not be read") from e

    if pages == 0:
        raise InvalidUpload("PDF has no pages")


def validate_cover(upload: UploadedFile, max_bytes: int):
    if upload.extension not in COVER_EXTENSIONS or not (upload.content_type or "").startswith("image/"):
        raise InvalidUpload("Invalid cover image")

    if len(upload.data) > max_bytes:
        raise InvalidUpload("Cover image too large")


def publish_book(
    session: Session,
    principal: Optional[Principal],
    *,
    title: str,
    description: str,
    price: int,
    pdf: Optional[UploadedFile],
    cover: Optional[UploadedFile] = None,
    files: FileStore,
) -> Book:
    """Validate and store the uploads, then create the Book row.

    Every file is checked before anything is written, so a rejected cover
    never leaves an orphaned PDF behind.
    """
    if principal is None:
        raise Unauthenticated()
    if not principal.is_author:
        raise Forbidden("Only authors can publish books")

    title = (title or "").strip()
    if not title:
        raise InvalidUpload("Title is required")
    try:
        check_renderable(title)
    except EncodingError as e:
        raise InvalidUpload(f"Title cannot be printed on download copies: {e.message}") from e
    if price < 0:
        raise InvalidUpload("Price cannot be negative")

    validate_pdf(pdf, settings.max_pdf_bytes)
    if cover is not None:
        validate_cover(cover, settings.max_cover_bytes)

    pdf_key = files.put_bytes(pdf.data, f"sources/{uuid4().hex}.pdf", content_type="application/pdf")

    cover_key = None
    if cover is not None:
        cover_key = files.put_bytes(
            cover.data,
            f"covers/{uuid4().hex}{cover.extension}",
            content_type=cover.content_type,
        )

    book = Book(
        author_id=principal.user_id,
        title=title,
        description=description or "",
        price=price,
        pdf_key=pdf_key,
        cover_key=cover_key,
    )

    session.add(book)
    session.commit()
    session.refresh(book)

    logger.info(f"Book {book.id} published by user {principal.user_id}")
    return book
