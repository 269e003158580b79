# rollcall/api/v1/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rollcall.api.deps import get_current_user, get_db
from rollcall.core.config import settings
from rollcall.core.errors import StorageUnavailable
from rollcall.core.passwords import check_password
from rollcall.core.tokens import create_access_token
from rollcall.models.user import User
from rollcall.schemas.token import LoginIn, Token
from rollcall.schemas.user import UserOut

logger = logging.getLogger(__name__)

router = APIRouter()

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()

@router.post("/login", response_model=Token)
def login(body: LoginIn, db: Session = Depends(get_db)):
    email = normalize_email(body.email)
    try:
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.error("storage failure during login", exc_info=exc)
        db.rollback()
        raise StorageUnavailable(table="users")
    stored = user.hashed_password if user is not None and user.status == "active" else None
    ok, new_hash = check_password(body.password, stored)
    if not ok:
        logger.info("login failed for %s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if new_hash:
        user.hashed_password = new_hash
        db.add(user); db.commit()

    return Token(
        access_token=create_access_token(sub=str(user.id), role=user.role),
        expires_in=int(settings.ACCESS_TOKEN_EXPIRE_MINUTES) * 60,
        user=UserOut.model_validate(user),
    )

@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
