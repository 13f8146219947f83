"""Authentication API endpoints.

Staff sign in with email and password (OAuth2 form) and get an access and
refresh token pair. Drivers and restaurants sign in to their portals and get
a single longer-lived token. Every token carries an ``actor`` claim so a
driver token can never pass as a staff token.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.driver import Driver
from app.models.restaurant import Restaurant
from app.models.user import User, UserRole
from app.orders.repository import ActorRef
from app.orders.state_machine import Actor
from app.schemas.auth import (
    Token,
    PortalToken,
    LoginRequest,
    DriverLoginRequest,
    RestaurantLoginRequest,
    RefreshRequest,
    UserCreate,
    UserResponse,
)

router = APIRouter()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash password"""
    return pwd_context.hash(password)


def create_access_token(user: User) -> str:
    """Create staff JWT access token"""
    expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(user.id),
        "actor": Actor.STAFF.value,
        "role": user.role.value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(user: User) -> str:
    """Create staff JWT refresh token"""
    expire = datetime.utcnow() + timedelta(days=settings.refresh_token_expire_days)
    payload = {
        "sub": str(user.id),
        "actor": Actor.STAFF.value,
        "exp": expire,
        "type": "refresh",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_portal_token(actor: Actor, subject: str) -> str:
    """Driver or restaurant portal token"""
    expire = datetime.utcnow() + timedelta(days=settings.portal_token_expire_days)
    payload = {
        "sub": subject,
        "actor": actor.value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str, actor: Actor) -> str:
    """Return the subject of an access token issued to ``actor``"""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise _credentials_exception()

    subject = payload.get("sub")
    if subject is None or payload.get("type") != "access" or payload.get("actor") != actor.value:
        raise _credentials_exception()
    return subject


async def _load_user(db: AsyncSession, subject: str) -> Optional[User]:
    try:
        user_id = UUID(subject)
    except ValueError:
        return None
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def _load_driver(db: AsyncSession, subject: str) -> Optional[Driver]:
    try:
        driver_id = UUID(subject)
    except ValueError:
        return None
    result = await db.execute(select(Driver).where(Driver.id == driver_id))
    return result.scalar_one_or_none()


async def _load_restaurant(db: AsyncSession, subject: str) -> Optional[Restaurant]:
    result = await db.execute(select(Restaurant).where(Restaurant.slug == subject))
    return result.scalar_one_or_none()


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current staff user from token"""
    user = await _load_user(db, decode_access_token(token, Actor.STAFF))
    if user is None or not user.is_active:
        raise _credentials_exception()
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Verify user is active"""
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def require_role(required_role: UserRole):
    """Dependency factory for role-based access control"""
    async def role_checker(current_user: User = Depends(get_current_active_user)) -> User:
        if not current_user.has_permission(required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user
    return role_checker


async def get_current_driver(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Driver:
    """Get the signed-in driver"""
    driver = await _load_driver(db, decode_access_token(token, Actor.DRIVER))
    if driver is None or not driver.is_active:
        raise _credentials_exception()
    return driver


async def get_current_restaurant(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Restaurant:
    """Get the signed-in restaurant"""
    restaurant = await _load_restaurant(db, decode_access_token(token, Actor.RESTAURANT))
    if restaurant is None or not restaurant.is_active:
        raise _credentials_exception()
    return restaurant


@dataclass
class Principal:
    """Authenticated non-customer caller of a shared endpoint"""
    actor: ActorRef
    user: Optional[User] = None
    driver: Optional[Driver] = None
    restaurant: Optional[Restaurant] = None


async def get_optional_principal(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[Principal]:
    """Staff, driver or restaurant behind the bearer token; ``None`` for customers"""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise _credentials_exception()
    if payload.get("type") != "access" or not payload.get("sub"):
        raise _credentials_exception()

    subject = payload["sub"]
    actor = payload.get("actor")
    if actor == Actor.STAFF.value:
        user = await _load_user(db, subject)
        if user is not None and user.is_active:
            return Principal(ActorRef(Actor.STAFF, str(user.id)), user=user)
    elif actor == Actor.DRIVER.value:
        driver = await _load_driver(db, subject)
        if driver is not None and driver.is_active:
            return Principal(ActorRef(Actor.DRIVER, str(driver.id)), driver=driver)
    elif actor == Actor.RESTAURANT.value:
        restaurant = await _load_restaurant(db, subject)
        if restaurant is not None and restaurant.is_active:
            return Principal(ActorRef(Actor.RESTAURANT, restaurant.slug), restaurant=restaurant)
    raise _credentials_exception()


async def _authenticate_staff(db: AsyncSession, email: str, password: str) -> Token:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    # Update last login
    user.last_login = datetime.utcnow()

    # Generate tokens
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)

    # Store refresh token
    user.refresh_token = refresh_token
    await db.commit()

    return Token(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Authenticate staff user and return tokens"""
    return await _authenticate_staff(db, form_data.username, form_data.password)


@router.post("/login/json", response_model=Token)
async def login_json(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Same as ``/login`` for clients that post JSON"""
    return await _authenticate_staff(db, request.email, request.password)


@router.post("/refresh", response_model=Token)
async def refresh_token(
    request: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Refresh access token using refresh token"""
    try:
        payload = jwt.decode(
            request.refresh_token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        user_id: str = payload.get("sub")
        token_type: str = payload.get("type")

        if user_id is None or token_type != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token",
            )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    user = await _load_user(db, user_id)

    if not user or user.refresh_token != request.refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    # Generate new tokens
    access_token = create_access_token(user)
    new_refresh_token = create_refresh_token(user)

    # Update refresh token (rotation)
    user.refresh_token = new_refresh_token
    await db.commit()

    return Token(
        access_token=access_token,
        refresh_token=new_refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("/driver/login", response_model=PortalToken)
async def driver_login(
    request: DriverLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Driver portal sign-in"""
    result = await db.execute(select(Driver).where(Driver.phone == request.phone.strip()))
    driver = result.scalar_one_or_none()

    if not driver or not verify_password(request.password, driver.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect phone or password",
        )
    if not driver.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Driver account is disabled",
        )

    return PortalToken(
        access_token=create_portal_token(Actor.DRIVER, str(driver.id)),
        expires_in=settings.portal_token_expire_days * 86400,
        actor=Actor.DRIVER.value,
        actor_id=str(driver.id),
        name=driver.name,
    )


@router.post("/restaurant/login", response_model=PortalToken)
async def restaurant_login(
    request: RestaurantLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Restaurant portal sign-in"""
    restaurant = await _load_restaurant(db, request.slug.strip())

    if (
        not restaurant
        or not restaurant.hashed_password
        or not verify_password(request.password, restaurant.hashed_password)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect restaurant or password",
        )
    if not restaurant.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Restaurant is disabled",
        )

    return PortalToken(
        access_token=create_portal_token(Actor.RESTAURANT, restaurant.slug),
        expires_in=settings.portal_token_expire_days * 86400,
        actor=Actor.RESTAURANT.value,
        actor_id=restaurant.slug,
        name=restaurant.name,
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user),
):
    """Get current user information"""
    return current_user


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Create a staff account (admin only)"""
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        phone=user_data.phone,
        role=user_data.role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Logout user by invalidating refresh token"""
    current_user.refresh_token = None
    await db.commit()
    return {"message": "Successfully logged out"}
