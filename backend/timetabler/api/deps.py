from collections.abc import Callable, Generator, Iterable

from fastapi import Depends, HTTPException, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from timetabler.core.security import decode_token
from timetabler.db.session import SessionLocal
from timetabler.models.timetable import Timetable
from timetabler.models.user import User, UserRole
from timetabler.services.catalog import ResourceCatalog

security = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def user_for_token(db: Session, token: str | None) -> User | None:
    """User named by a bearer token's ``sub`` claim, or None for any bad token."""
    if not token:
        return None
    try:
        user_id = decode_token(token).get("sub")
    except JWTError:
        return None
    if not user_id:
        return None
    return db.get(User, user_id)


def websocket_token(websocket: WebSocket) -> str | None:
    # Browsers cannot set headers on a websocket handshake, so the query wins.
    token = websocket.query_params.get("token")
    if token:
        return token
    scheme, _, value = websocket.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    user = user_for_token(db, credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    allowed_roles: Iterable[UserRole] = set(roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return role_checker


def get_catalog(db: Session = Depends(get_db)) -> ResourceCatalog:
    return ResourceCatalog(db)


def ensure_timetable_editor(current_user: User, timetable: Timetable) -> None:
    """Only the creator or an admin may generate, submit or delete a timetable."""
    if current_user.role == UserRole.admin or timetable.created_by == current_user.id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only the creator or an admin can change this timetable",
    )


def ensure_reviewer(current_user: User) -> None:
    if current_user.role != UserRole.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only an admin can review timetables")
