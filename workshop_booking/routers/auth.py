from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
import logging

from workshop_booking.database import get_db
from workshop_booking.crud import user as crud
from workshop_booking.schemas.user import UserCreate, UserLogin, UserResponse
from workshop_booking.services.auth import (
    authenticate_user,
    create_token_for_user,
    get_user_by_email,
)

router = APIRouter()

logger = logging.getLogger(__name__)


def _auth_payload(user) -> dict:
    return {
        "user": UserResponse.model_validate(user),
        "token": create_token_for_user(user),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user: UserCreate, db: Session = Depends(get_db)):
    if get_user_by_email(db, user.email):
        raise HTTPException(
            status_code=400, detail="User with this email already exists"
        )

    try:
        db_user = crud.create_user(db, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("User %s registered", db_user.id)
    return {
        "success": True,
        "message": "User registered successfully",
        "data": _auth_payload(db_user),
    }


@router.post("/login")
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return {
        "success": True,
        "message": "Login successful",
        "data": _auth_payload(user),
    }


@router.post("/token")
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)
):
    """OAuth2 password flow, used by the interactive API docs."""
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"access_token": create_token_for_user(user), "token_type": "bearer"}
