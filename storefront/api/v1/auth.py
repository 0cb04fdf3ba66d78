import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.core.config import settings
from storefront.core.exceptions import EmailAlreadyExists, InvalidCredentials
from storefront.core.rate_limiter import limiter
from storefront.core.security import create_access_token, hash_password, verify_password
from storefront.db.session import get_db
from storefront.models.user import User
from storefront.schemas.user import UserCreate, UserLogin, UserResponse
from storefront.utils.response import success

router = APIRouter()
logger = structlog.get_logger()

ACCESS_COOKIE = "access_token"


def _authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    # Same error for unknown email and wrong password
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    return user


def _session_response(user: User, token: str) -> JSONResponse:
    body = success(
        data={
            "user": {"id": user.id, "email": user.email, "role": user.role.value},
            "access_token": token,
            "token_type": "bearer",
        },
        message="Login successful",
    )
    response = JSONResponse(content=body)
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        path="/",
    )
    return response


@router.post(
    "/register",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Create a customer account",
    responses={409: {"description": "Email already registered"}},
)
@limiter.limit("5/minute")
def register(request: Request, payload: UserCreate, db: Session = Depends(get_db)):
    if db.query(User.id).filter(User.email == payload.email).first() is not None:
        raise EmailAlreadyExists()

    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name,
        phone=payload.phone,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent signup with the same email won the unique index
        db.rollback()
        raise EmailAlreadyExists()
    db.refresh(user)

    logger.info("user_registered", user_id=user.id)
    return success(data=UserResponse.model_validate(user).model_dump(), message="Registration successful")


@router.post(
    "/login",
    response_model=dict,
    summary="Exchange credentials for an access token",
    description="Returns the token in the body and also sets it as an httpOnly cookie.",
    responses={401: {"description": "Invalid credentials"}, 403: {"description": "Account inactive"}},
)
@limiter.limit("10/minute")
def login(request: Request, credentials: UserLogin, db: Session = Depends(get_db)):
    user = _authenticate(db, credentials.email, credentials.password)
    return _session_response(user, create_access_token(user.id, user.role.value))


@router.post("/logout")
def logout():
    response = JSONResponse(content=success(message="Logged out"))
    response.delete_cookie(ACCESS_COOKIE, path="/")
    return response


@router.get("/me", response_model=dict)
def read_me(current_user: User = Depends(get_current_user)):
    return success(data=UserResponse.model_validate(current_user).model_dump())
