from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courierhub.api.deps import TOKEN_COOKIE, client_address, get_current_actor, http_error
from courierhub.config import settings
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.repositories.user_repo import UserRepository
from courierhub.schemas.user_schema import UserOut
from courierhub.services.auth_service import AuthService
from courierhub.services.authz import Actor

router = APIRouter(tags=["auth"])


class LoginIn(BaseModel):
    email: str
    password: str


@router.post("/login", summary="Log in and receive a session token")
def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_db)):
    svc = AuthService(db)
    try:
        user, token = svc.login(payload.email, payload.password, client_key=client_address(request))
    except CourierHubError as e:
        raise http_error(e)
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        max_age=settings.TOKEN_TTL_SECONDS,
    )
    return {"token": token, "user": UserOut.model_validate(user).model_dump(mode="json")}


@router.post("/logout", summary="Clear the session cookie")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return {"ok": True}


@router.get("/me", summary="Current user")
def me(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    user = UserRepository(db).get(actor.user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists")
    return {
        "user": UserOut.model_validate(user).model_dump(mode="json"),
        "capability": actor.capability.value,
    }
