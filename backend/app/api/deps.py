import uuid
from collections.abc import Generator
from typing import Annotated

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError
from sqlmodel import Session

from app.core import security
from app.core.config import settings
from app.core.db import engine
from app.core.errors import ForbiddenError, NotFoundError, UnauthorizedError
from app.models import TokenPayload, User

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/login/access-token"
)


def new_session() -> Session:
    """Session for work that outlives the request, such as background jobs."""
    return Session(engine)


def get_db() -> Generator[Session, None, None]:
    with new_session() as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]
TokenDep = Annotated[str, Depends(reusable_oauth2)]


def get_current_user(session: SessionDep, token: TokenDep) -> User:
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[security.ALGORITHM]
        )
        token_data = TokenPayload(**payload)
        user_id = uuid.UUID(str(token_data.sub))
    except (InvalidTokenError, ValidationError, ValueError) as exc:
        raise UnauthorizedError("Could not validate credentials") from exc
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if not user.is_active:
        raise ForbiddenError("Inactive user")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def ensure_owner(owner_id: uuid.UUID, current_user: User, label: str) -> None:
    if owner_id != current_user.id and not current_user.is_superuser:
        raise ForbiddenError(f"Not enough permissions for this {label}")
