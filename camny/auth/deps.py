from typing import List

from fastapi import HTTPException, status, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from camny.services import auth as auth_service
from camny.services.auth import Principal


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def _principal_from_token(token: str) -> Principal:
    try:
        return auth_service.verify_access_token(token)
    except (JWTError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(token: str = Depends(oauth2_scheme)) -> Principal:
    # the token is trusted as issued; no per-request user lookup
    return _principal_from_token(token)


def role_required(allowed: List[str]):
    async def _dep(current_user: Principal = Depends(get_current_user)) -> Principal:
        if current_user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return current_user

    return _dep
