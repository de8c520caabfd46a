from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import decode_token
from app.db.database import get_db
from app.models.user import User, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

ROLE_PERMISSIONS: dict[UserRole, set[str]] = {
    UserRole.ADMIN: {
        "inventory:view",
        "inventory:manage",
        "orders:manage",
        "clients:manage",
        "vouchers:view",
        "vouchers:manage",
        "configuration:view",
        "configuration:manage",
        "users:manage",
    },
    UserRole.CASHIER: {
        "inventory:view",
        "orders:manage",
        "clients:manage",
        "vouchers:view",
        "configuration:view",
    },
}


def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    try:
        payload = decode_token(token.strip())
    except JWTError as exc:
        raise credentials_exception from exc
    subject = payload.get("sub")
    if subject is None or payload.get("type") != "access":
        raise credentials_exception

    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise credentials_exception from exc

    user = db.get(User, user_id)
    if not user:
        raise credentials_exception
    return user


def require_permission(permission: str):
    def checker(current_user: User = Depends(get_current_user)) -> User:
        permissions = ROLE_PERMISSIONS.get(current_user.role, set())
        if permission not in permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {permission}",
            )
        return current_user

    return checker
