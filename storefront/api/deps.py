# storefront/api/deps.py
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.services.cache_service import CacheService


def get_cache(request: Request) -> CacheService:
    # jeden CacheService na proces, trzymany w app.state
    return request.app.state.cache


def get_current_user(
    x_user_id: int | None = Header(None, description="ID uzytkownika z zweryfikowanego tokenu"),
    db: Session = Depends(get_db),
) -> UserModel:
    """
    Token jest weryfikowany przed serwisem (gateway), tu tylko
    ladujemy uzytkownika, ktorego id przyszlo w naglowku.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Access token required")

    user = db.get(UserModel, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")

    return user


def require_admin(user: UserModel = Depends(get_current_user)) -> UserModel:
    if user.role != "ADMIN":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
