from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import or_
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from camny.auth.deps import get_current_user
from camny.config import settings
from camny.db.session import get_session
from camny.enums import Role
from camny.exceptions import Conflict
from camny.models.models import User
from camny.redis_client import redis_client
from camny.services import auth as auth_service
from camny.services.auth import Principal
from camny.services.phones import normalize_phone, phone_variants

router = APIRouter(tags=["auth"])


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: Optional[str] = None
    phone: Optional[str] = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str


@router.get("/")
async def auth_root():
    return {"module": "auth", "status": "ok"}


@router.post("/register", status_code=201)
async def register(payload: RegisterIn, db: AsyncSession = Depends(get_session)):
    """Self-service sign-up; always creates a passenger account."""
    email = payload.email.lower()
    phone = normalize_phone(payload.phone) or None
    async with db.begin():
        clause = User.email == email
        if phone:
            clause = or_(clause, User.phone.in_(phone_variants(phone)))
        res = await db.execute(sa_select(User).where(clause))
        if res.scalars().first():
            raise Conflict("Email or phone already registered")
        user = User(
            email=email,
            full_name=payload.full_name,
            phone=phone,
            hashed_password=auth_service.hash_password(payload.password),
            role=Role.PASSENGER,
        )
        db.add(user)
    return {"id": user.id, "email": user.email, "full_name": user.full_name, "phone": user.phone, "role": user.role}


@router.post("/login", response_model=TokenOut)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_session)):
    identifier = form_data.username.strip().lower()
    rl_key = f"rl:login:{identifier}"
    attempts = await redis_client.get(rl_key)
    if attempts and int(attempts) >= settings.LOGIN_RATE_LIMIT_ATTEMPTS:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many login attempts, try later")

    # email or phone
    stmt = sa_select(User).where(or_(User.email == identifier, User.phone.in_(phone_variants(identifier))))
    res = await db.execute(stmt)
    user = res.scalars().first()
    if not user or not user.is_active or not auth_service.verify_password(form_data.password, user.hashed_password):
        await redis_client.incr(rl_key)
        await redis_client.expire(rl_key, settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    await redis_client.delete(rl_key)
    access = auth_service.create_access_token(user.id, user.role)
    return {"access_token": access, "user_id": user.id, "role": user.role}


@router.get("/me")
async def me(current_user: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    user = await db.get(User, current_user.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"id": user.id, "email": user.email, "full_name": user.full_name, "phone": user.phone, "role": user.role}
