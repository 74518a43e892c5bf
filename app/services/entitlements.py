import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.constants.order_status import PAID
from app.models.book import Book
from app.models.order import Order
from app.schemas.orders_schemas import LibraryItem
from app.schemas.user_schemas import Principal
from app.services.artifacts import ARTIFACT_MEDIA_TYPE, ArtifactKey
from app.services.errors import (
    DerivationError,
    NotFound,
    PurchaseFailed,
    StorageFailure,
    Unauthenticated,
)
from app.services.file_store import FileStore
from app.services.watermark import build_watermark_text, derive

logger = logging.getLogger(__name__)


def _find_order(session: Session, buyer_id: int, book_id: int) -> Optional[Order]:
    return session.exec(
        select(Order)
        .where(Order.buyer_id == buyer_id)
        .where(Order.book_id == book_id)
    ).first()


def owns_book(session: Session, buyer_id: Optional[int], book_id: int) -> bool:
    """True iff a PAID order exists for the pair. Read only."""
    if buyer_id is None:
        return False

    order_id = session.exec(
        select(Order.id)
        .where(Order.buyer_id == buyer_id)
        .where(Order.book_id == book_id)
        .where(Order.status == PAID)
    ).first()

    return order_id is not None


def record_order(session: Session, buyer_id: int, book_id: int) -> Order:
    """Insert the PAID order for the pair, or return the one already there.

    The unique constraint on (buyer_id, book_id) decides races between
    concurrent purchases; the loser rolls back and reads the winner's row.
    """
    existing = _find_order(session, buyer_id, book_id)
    if existing:
        return existing

    order = Order(buyer_id=buyer_id, book_id=book_id, status=PAID)
    session.add(order)

    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        existing = _find_order(session, buyer_id, book_id)
        if existing is None:
            raise
        logger.info(f"Concurrent purchase of book {book_id} by user {buyer_id}, reusing order {existing.id}")
        return existing

    session.refresh(order)
    logger.info(f"Order {order.id} recorded: user {buyer_id} bought book {book_id}")
    return order


def purchase(
    session: Session,
    principal: Optional[Principal],
    book_id: int,
    *,
    files: FileStore,
    deriver: Callable[[bytes, str], bytes] = derive,
) -> int:
    """Record the purchase and (re)write the buyer's watermarked copy.

    Repeated calls are safe: the order is created once and the artifact is
    regenerated every time. If the copy cannot be produced the order stays
    committed, the previous artifact is untouched and ``PurchaseFailed`` is
    raised.
    """
    if principal is None:
        raise Unauthenticated()

    book = session.get(Book, book_id)
    if not book:
        raise NotFound(f"Book {book_id} not found")

    order = record_order(session, principal.user_id, book.id)
    key = ArtifactKey(principal.user_id, book.id)

    try:
        source = files.get_bytes(book.pdf_key)
        stamped = deriver(source, build_watermark_text(principal.email, book.title, order.id))
        files.put_bytes(stamped, key.storage_key, content_type=ARTIFACT_MEDIA_TYPE)
    except FileNotFoundError as e:
        logger.error(f"Source for book {book.id} missing from storage")
        raise PurchaseFailed(order.id, StorageFailure("Source document missing")) from e
    except (DerivationError, StorageFailure) as e:
        logger.error(f"Could not prepare copy for order {order.id}: {e}")
        raise PurchaseFailed(order.id, e) from e

    return order.id


def list_library(session: Session, buyer_id: int) -> List[LibraryItem]:
    rows = session.exec(
        select(Order, Book)
        .join(Book, Book.id == Order.book_id)
        .where(Order.buyer_id == buyer_id)
        .where(Order.status == PAID)
        .order_by(Order.created_at.desc(), Order.id.desc())
    ).all()

    return [
        LibraryItem(
            order_id=order.id,
            book_id=book.id,
            title=book.title,
            price=book.price,
            has_cover=book.has_cover,
            purchased_at=order.created_at,
        )
        for order, book in rows
    ]
