from typing import Any

from fastapi import APIRouter

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.core.errors import ConflictError, InvalidInputError
from app.core.security import verify_password
from app.integrations.billing import BillingService
from app.models import (
    Message,
    UpdatePassword,
    UsageSummary,
    UserCreate,
    UserPublic,
    UserRegister,
    UserUpdateMe,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/signup", response_model=UserPublic)
def register_user(session: SessionDep, user_in: UserRegister) -> Any:
    """
    Create new user without the need to be logged in.
    """
    user = crud.get_user_by_email(session=session, email=user_in.email)
    if user:
        raise ConflictError("The user with this email already exists in the system")
    user_create = UserCreate.model_validate(user_in)
    return crud.create_user(session=session, user_create=user_create)


@router.get("/me", response_model=UserPublic)
def read_user_me(current_user: CurrentUser) -> Any:
    return current_user


@router.patch("/me", response_model=UserPublic)
def update_user_me(*, session: SessionDep, user_in: UserUpdateMe, current_user: CurrentUser) -> Any:
    if user_in.email:
        existing_user = crud.get_user_by_email(session=session, email=user_in.email)
        if existing_user and existing_user.id != current_user.id:
            raise ConflictError("User with this email already exists")
    return crud.update_user(session=session, db_user=current_user, user_in=user_in)


@router.patch("/me/password", response_model=Message)
def update_password_me(*, session: SessionDep, body: UpdatePassword, current_user: CurrentUser) -> Any:
    verified, _ = verify_password(body.current_password, current_user.hashed_password)
    if not verified:
        raise InvalidInputError("Incorrect password")
    if body.current_password == body.new_password:
        raise InvalidInputError("New password cannot be the same as the current one")
    crud.update_user_password(session=session, db_user=current_user, new_password=body.new_password)
    return Message(message="Password updated successfully")


@router.get("/me/usage", response_model=UsageSummary)
def read_usage_me(session: SessionDep, current_user: CurrentUser) -> Any:
    """
    Plan limits and what the current user has used of them this month.
    """
    return BillingService(session).usage_summary(current_user)
