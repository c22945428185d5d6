"""API Dependencies - Staff authentication and role checks"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from domain.auth import User, UserInDB, StaffRole
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Demo staff directory keyed by username; passwords are hashed on first lookup
fake_users_db = {
    "admin": {
        "user_id": "123e4567-e89b-12d3-a456-426614174000",
        "full_name": "Admin User",
        "email": "admin@example.com",
        "role": StaffRole.ADMIN,
        "password": "admin123",
    },
    "frontdesk": {
        "user_id": "123e4567-e89b-12d3-a456-426614174001",
        "full_name": "Front Desk",
        "email": "frontdesk@example.com",
        "role": StaffRole.FRONT_DESK,
        "password": "frontdesk123",
    },
}


@lru_cache(maxsize=None)
def _hashed(password: str) -> str:
    return get_password_hash(password)


def get_user(directory: dict, username: str) -> Optional[UserInDB]:
    entry = directory.get(username)
    if entry is None:
        return None
    fields = {k: v for k, v in entry.items() if k != "password"}
    return UserInDB(
        username=username,
        hashed_password=_hashed(entry["password"]),
        **fields
    )


async def get_current_user(token: str = Depends(oauth2_scheme)) -> UserInDB:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise unauthorized
    token_data = TokenData(username=payload.get("sub"))
    if token_data.username is None:
        raise unauthorized

    user = get_user(fake_users_db, token_data.username)
    if user is None:
        raise unauthorized
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


async def get_inventory_manager(current_user: User = Depends(get_current_active_user)) -> User:
    """Staff allowed to configure room types and daily inventory"""
    if not current_user.can_manage_inventory():
        raise HTTPException(status_code=403, detail="Inventory configuration requires a manager role")
    return current_user
