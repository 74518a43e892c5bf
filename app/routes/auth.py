import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from app.database import get_session
from app.models.user import User
from app.schemas.user_schemas import UserRegister, UserLogin, Token, UserResponse
from app.utils.hash import hash_password, verify_password
from app.utils.token import create_access_token


router = APIRouter()
logger = logging.getLogger(__name__)


def _find_user(session: Session, email: str):
    return session.exec(select(User).where(User.email == email)).first()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(payload: UserRegister, session: Session = Depends(get_session)):
    if _find_user(session, payload.email):
        raise HTTPException(400, "Email already registered")

    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        name=payload.name or "",
        role=payload.role,
    )

    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # a concurrent registration took the email after our lookup
        session.rollback()
        logger.info(f"Registration raced on existing email {payload.email}")
        raise HTTPException(400, "Email already registered")
    session.refresh(user)

    return UserResponse(
        message="Registration successful.",
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
    )


@router.post("/login", response_model=Token)
def login(payload: UserLogin, session: Session = Depends(get_session)):
    user = _find_user(session, payload.email)

    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(401, "Invalid email or password")

    token = create_access_token({"user_id": user.id})
    return Token(access_token=token, token_type="bearer")
