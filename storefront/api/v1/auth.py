from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import structlog

from storefront.api.deps import get_current_user
from storefront.core.exceptions import EmailAlreadyExists, Forbidden, InvalidCredentials
from storefront.core.rate_limiter import limiter
from storefront.core.security import create_access_token, hash_password, verify_password
from storefront.db.session import get_db
from storefront.models.user import User, UserRole
from storefront.schemas.user import UserCreate, UserLogin, UserResponse
from storefront.utils.response import success

router = APIRouter()
logger = structlog.get_logger()


def _issue_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})


@router.post(
    "/signup",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Register customer account",
    description="""
Creates a new customer account and returns the user plus an access token.

Validation:
1. Email must be unique (case-insensitive)
2. Password needs 8+ chars with upper, lower and a digit
3. Accounts are always created with the `customer` role
""",
    responses={
        201: {"description": "Registration successful"},
        400: {"description": "Validation error"},
        409: {"description": "Email already registered"},
    },
)
@limiter.limit("10/minute")
def signup(request: Request, user_in: UserCreate, db: Session = Depends(get_db)):
    email = user_in.email.lower()
    existing_user = db.query(User).filter(func.lower(User.email) == email).first()
    if existing_user:
        raise EmailAlreadyExists()

    user = User(
        email=email,
        password_hash=hash_password(user_in.password),
        full_name=user_in.full_name,
        role=UserRole.CUSTOMER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailAlreadyExists()
    db.refresh(user)

    logger.info("user_registered", user_id=user.id)
    return success(
        data={"user": UserResponse.model_validate(user), "token": _issue_token(user)},
        message="User registered successfully",
    )


@router.post(
    "/login",
    response_model=dict,
    summary="Login user",
    responses={
        200: {"description": "Login successful"},
        401: {"description": "Invalid credentials"},
        403: {"description": "Account inactive"},
    },
)
@limiter.limit("10/minute")
def login(request: Request, credentials: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(func.lower(User.email) == credentials.email.lower()).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        logger.info("login_failed")
        raise InvalidCredentials()

    if not user.is_active:
        raise Forbidden("Account is inactive")

    logger.info("login_succeeded", user_id=user.id)
    return success(
        data={"user": UserResponse.model_validate(user), "token": _issue_token(user)},
        message="Login successful",
    )


@router.get("/profile", response_model=dict)
def get_profile(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's profile"""
    return success(data={"user": UserResponse.model_validate(current_user)}, message="Profile retrieved")
