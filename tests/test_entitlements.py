"""Tests for the entitlement ledger: idempotent purchase and ownership."""

from __future__ import annotations

from datetime import timezone

import pytest
from sqlmodel import Session, select

from app.constants.order_status import PAID
from app.models.order import Order
from app.schemas.user_schemas import Principal
from app.services import entitlements
from app.services.artifacts import ArtifactKey
from app.services.entitlements import list_library, owns_book, purchase, record_order
from app.services.errors import (
    CorruptSource,
    EncodingError,
    NotFound,
    PurchaseFailed,
    StorageFailure,
    Unauthenticated,
)
from pdf_helpers import page_count, page_texts


def _orders(session: Session, buyer_id: int, book_id: int) -> list[Order]:
    return session.exec(
        select(Order).where(Order.buyer_id == buyer_id).where(Order.book_id == book_id)
    ).all()


class TestOwnsBook:
    def test_false_before_purchase_true_after(self, session, files, principal, book):
        assert owns_book(session, principal.user_id, book.id) is False
        purchase(session, principal, book.id, files=files)
        assert owns_book(session, principal.user_id, book.id) is True

    def test_anonymous_never_owns(self, session, files, principal, book):
        purchase(session, principal, book.id, files=files)
        assert owns_book(session, None, book.id) is False

    def test_other_buyer_does_not_own(self, session, files, principal, book, make_user):
        purchase(session, principal, book.id, files=files)
        other = make_user()
        assert owns_book(session, other.id, book.id) is False

    def test_pure_read(self, session, principal, book):
        owns_book(session, principal.user_id, book.id)
        assert session.exec(select(Order)).all() == []


class TestPurchase:
    def test_creates_paid_order_and_artifact(self, session, files, principal, book):
        order_id = purchase(session, principal, book.id, files=files)

        (order,) = _orders(session, principal.user_id, book.id)
        assert order.id == order_id
        assert order.status == PAID

        key = ArtifactKey(principal.user_id, book.id)
        artifact = files.get_bytes(key.storage_key)
        assert page_count(artifact) == 3
        for text in page_texts(artifact):
            assert "buyer@test.com" in text
            assert "Lagos Nights" in text
            assert f"Order {order_id}" in text

    def test_twice_yields_one_order(self, session, files, principal, book):
        first = purchase(session, principal, book.id, files=files)
        second = purchase(session, principal, book.id, files=files)

        assert first == second
        assert len(_orders(session, principal.user_id, book.id)) == 1
        assert files.exists(ArtifactKey(principal.user_id, book.id).storage_key)

    def test_repeat_regenerates_artifact(self, session, files, principal, book):
        key = ArtifactKey(principal.user_id, book.id).storage_key
        purchase(session, principal, book.id, files=files)
        files.put_bytes(b"stale", key)

        purchase(session, principal, book.id, files=files)
        assert files.get_bytes(key) != b"stale"
        assert page_count(files.get_bytes(key)) == 3

    def test_unauthenticated(self, session, files, book):
        with pytest.raises(Unauthenticated):
            purchase(session, None, book.id, files=files)
        assert session.exec(select(Order)).all() == []

    def test_unknown_book(self, session, files, principal):
        with pytest.raises(NotFound):
            purchase(session, principal, 999, files=files)

    def test_buyers_get_separate_artifacts(self, session, files, principal, book, make_user):
        other = Principal.from_user(make_user(email="second@test.com"))
        purchase(session, principal, book.id, files=files)
        purchase(session, other, book.id, files=files)

        mine = page_texts(files.get_bytes(ArtifactKey(principal.user_id, book.id).storage_key))
        theirs = page_texts(files.get_bytes(ArtifactKey(other.user_id, book.id).storage_key))
        assert "buyer@test.com" in mine[0]
        assert "second@test.com" in theirs[0]
        assert "buyer@test.com" not in theirs[0]


class TestPurchaseFailures:
    def test_corrupt_source_keeps_order(self, session, files, principal, make_book):
        book = make_book(source=b"this is not a pdf")

        with pytest.raises(PurchaseFailed) as exc_info:
            purchase(session, principal, book.id, files=files)

        assert isinstance(exc_info.value.cause, CorruptSource)
        (order,) = _orders(session, principal.user_id, book.id)
        assert exc_info.value.order_id == order.id
        assert owns_book(session, principal.user_id, book.id)
        assert not files.exists(ArtifactKey(principal.user_id, book.id).storage_key)

    def test_unrenderable_buyer_email(self, session, files, book, make_user):
        buyer = Principal.from_user(make_user(email="чтец@test.com"))

        with pytest.raises(PurchaseFailed) as exc_info:
            purchase(session, buyer, book.id, files=files)

        assert isinstance(exc_info.value.cause, EncodingError)

    def test_failed_retry_keeps_previous_artifact(self, session, files, principal, book):
        purchase(session, principal, book.id, files=files)
        key = ArtifactKey(principal.user_id, book.id).storage_key
        good_copy = files.get_bytes(key)

        def half_written(source, text):
            raise CorruptSource("boom")

        with pytest.raises(PurchaseFailed):
            purchase(session, principal, book.id, files=files, deriver=half_written)

        assert files.get_bytes(key) == good_copy

    def test_storage_failure(self, session, files, principal, book, monkeypatch):
        def broken_put(data, key, content_type="application/octet-stream"):
            raise StorageFailure("disk full")

        monkeypatch.setattr(files, "put_bytes", broken_put)

        with pytest.raises(PurchaseFailed) as exc_info:
            purchase(session, principal, book.id, files=files)

        assert isinstance(exc_info.value.cause, StorageFailure)
        assert len(_orders(session, principal.user_id, book.id)) == 1

    def test_missing_source(self, session, files, principal, book):
        (files.root / book.pdf_key).unlink()

        with pytest.raises(PurchaseFailed) as exc_info:
            purchase(session, principal, book.id, files=files)

        assert isinstance(exc_info.value.cause, StorageFailure)

    def test_retry_after_failure_succeeds(self, session, files, principal, book):
        def failing(source, text):
            raise CorruptSource("boom")

        with pytest.raises(PurchaseFailed):
            purchase(session, principal, book.id, files=files, deriver=failing)

        order_id = purchase(session, principal, book.id, files=files)
        assert len(_orders(session, principal.user_id, book.id)) == 1
        assert _orders(session, principal.user_id, book.id)[0].id == order_id
        assert files.exists(ArtifactKey(principal.user_id, book.id).storage_key)


class TestRecordOrder:
    def test_concurrent_insert_reuses_winner(self, engine, session, principal, book, monkeypatch):
        # another request commits the order between our lookup and our insert
        with Session(engine) as other:
            winner = record_order(other, principal.user_id, book.id)
            winner_id = winner.id

        original = entitlements._find_order
        calls = []

        def miss_first(s, buyer_id, book_id):
            calls.append(buyer_id)
            if len(calls) == 1:
                return None
            return original(s, buyer_id, book_id)

        monkeypatch.setattr(entitlements, "_find_order", miss_first)

        order = record_order(session, principal.user_id, book.id)
        assert order.id == winner_id
        assert len(_orders(session, principal.user_id, book.id)) == 1

    def test_created_at_is_timezone_aware(self, principal, book):
        order = Order(buyer_id=principal.user_id, book_id=book.id)
        assert order.created_at.tzinfo is timezone.utc

    def test_recorded_order_has_timestamp(self, session, principal, book):
        order = record_order(session, principal.user_id, book.id)
        assert order.created_at is not None
        assert order.status == PAID


class TestListLibrary:
    def test_lists_owned_books(self, session, files, principal, make_book):
        first = make_book(title="First Light")
        second = make_book(title="Second Wind")
        make_book(title="Not Bought")

        purchase(session, principal, first.id, files=files)
        purchase(session, principal, second.id, files=files)

        titles = {item.title for item in list_library(session, principal.user_id)}
        assert titles == {"First Light", "Second Wind"}

    def test_empty_library(self, session, principal):
        assert list_library(session, principal.user_id) == []
