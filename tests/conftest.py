"""Shared test fixtures for AfriWrite Mini."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("ENV", "test")

import pytest
from fastapi.testclient import TestClient
from reportlab.lib.pagesizes import letter
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import app.models  # noqa: F401  (registers every table on the metadata)
from app.constants.roles import AUTHOR, READER
from app.database import get_session
from app.main import app as api
from app.models.book import Book
from app.models.user import User
from app.schemas.user_schemas import Principal
from app.services.file_store import LocalFileStore, get_file_store
from app.utils.hash import hash_password
from app.utils.token import create_access_token
from pdf_helpers import PageSize, build_pdf


# ---------------------------------------------------------------------------
# Storage and database
# ---------------------------------------------------------------------------


@pytest.fixture
def files(tmp_path: Path) -> LocalFileStore:
    """Provide a fresh LocalFileStore in a temp directory."""
    return LocalFileStore(tmp_path / "store")


@pytest.fixture
def engine():
    """Provide an in-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session


# ---------------------------------------------------------------------------
# Catalog factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Factory fixture: ``make_pdf(pages=5)`` or ``make_pdf(sizes=[...])``."""

    def _factory(pages: int = 1, sizes: Sequence[PageSize] | None = None) -> bytes:
        return build_pdf(sizes or [letter] * pages)

    return _factory


@pytest.fixture
def make_user(session: Session) -> Callable[..., User]:
    counter = iter(range(1, 10_000))

    def _factory(role: str = READER, email: str | None = None, name: str = "Test") -> User:
        user = User(
            email=email or f"user{next(counter)}@test.com",
            password_hash=hash_password("password123"),
            name=name,
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _factory


@pytest.fixture
def author(make_user) -> User:
    return make_user(role=AUTHOR, email="writer@test.com", name="Ada Writer")


@pytest.fixture
def reader(make_user) -> User:
    return make_user(role=READER, email="buyer@test.com", name="Bola Reader")


@pytest.fixture
def make_book(session: Session, files: LocalFileStore, author: User, make_pdf) -> Callable[..., Book]:
    """Factory fixture: store a source PDF and create its Book row."""
    counter = iter(range(1, 10_000))

    def _factory(
        title: str = "Lagos Nights",
        source: bytes | None = None,
        price: int = 1500,
    ) -> Book:
        key = files.put_bytes(source if source is not None else make_pdf(pages=3), f"sources/test-{next(counter)}.pdf")
        book = Book(
            author_id=author.id,
            title=title,
            description=f"{title} description",
            price=price,
            pdf_key=key,
        )
        session.add(book)
        session.commit()
        session.refresh(book)
        return book

    return _factory


@pytest.fixture
def book(make_book) -> Book:
    return make_book()


@pytest.fixture
def principal(reader: User) -> Principal:
    return Principal.from_user(reader)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def client(engine, files: LocalFileStore) -> Iterator[TestClient]:
    """TestClient wired to the test engine and file store."""

    def _session_override():
        with Session(engine) as s:
            yield s

    api.dependency_overrides[get_session] = _session_override
    api.dependency_overrides[get_file_store] = lambda: files
    with TestClient(api) as c:
        yield c
    api.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _factory(user: User) -> dict[str, str]:
        token = create_access_token({"user_id": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _factory
