from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courierhub.api.deps import get_current_actor, http_error
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.schemas.user_schema import UserOut
from courierhub.services.authz import Actor
from courierhub.services.user_service import UserService

router = APIRouter(tags=["users"])


class CreateUserIn(BaseModel):
    name: str
    email: str
    password: str
    role: str


class UpdateUserIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


def _out(user) -> dict:
    return UserOut.model_validate(user).model_dump(mode="json")


@router.get("", summary="Users of the caller's branch")
def list_users(
    role: Optional[str] = Query(None, description="admin | staff"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        users = UserService(db).list_users(actor, role=role)
    except CourierHubError as e:
        raise http_error(e)
    return {"items": [_out(u) for u in users], "total": len(users)}


@router.post("", status_code=201)
def create_user(payload: CreateUserIn, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        user = UserService(db).create_user(actor, payload.name, payload.email, payload.password, payload.role)
    except CourierHubError as e:
        raise http_error(e)
    return _out(user)


@router.get("/{user_id}")
def get_user(user_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        user = UserService(db).get_user(actor, user_id)
    except CourierHubError as e:
        raise http_error(e)
    return _out(user)


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    payload: UpdateUserIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        user = UserService(db).update_user(
            actor, user_id, name=payload.name, email=payload.email, password=payload.password
        )
    except CourierHubError as e:
        raise http_error(e)
    return _out(user)


@router.delete("/{user_id}")
def delete_user(user_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        UserService(db).delete_user(actor, user_id)
    except CourierHubError as e:
        raise http_error(e)
    return {"ok": True}
