import logging
from typing import Optional

from sqlmodel import Session

from app.schemas.user_schemas import Principal
from app.services.artifacts import (
    ARTIFACT_FILENAME,
    ARTIFACT_MEDIA_TYPE,
    ArtifactHandle,
    ArtifactKey,
)
from app.services.entitlements import owns_book
from app.services.errors import Forbidden, NotReady, Unauthenticated
from app.services.file_store import FileStore

logger = logging.getLogger(__name__)


def fetch(
    session: Session,
    principal: Optional[Principal],
    book_id: int,
    *,
    files: FileStore,
) -> ArtifactHandle:
    """Hand the caller their own watermarked copy of ``book_id``.

    Ownership is checked against the orders table on every call; a file
    sitting in storage is never proof of ownership.
    """
    if principal is None:
        raise Unauthenticated()

    if not owns_book(session, principal.user_id, book_id):
        logger.warning(f"User {principal.user_id} tried to download book {book_id} without owning it")
        raise Forbidden()

    key = ArtifactKey(principal.user_id, book_id)
    try:
        content = files.get_bytes(key.storage_key)
    except FileNotFoundError:
        raise NotReady()

    return ArtifactHandle(
        filename=ARTIFACT_FILENAME,
        media_type=ARTIFACT_MEDIA_TYPE,
        content=content,
    )
