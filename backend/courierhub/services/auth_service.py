from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
import jwt
from sqlalchemy.orm import Session

from courierhub.config import settings
from courierhub.errors import AuthenticationError, RateLimitedError
from courierhub.models.user import User
from courierhub.repositories.user_repo import UserRepository
from courierhub.utils.log import get_logger
from courierhub.utils.rate_limit import FixedWindowLimiter

log = get_logger("courierhub.auth", "auth")

login_limiter = FixedWindowLimiter(settings.LOGIN_RATE_LIMIT, settings.LOGIN_RATE_WINDOW_SECONDS)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def issue_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user.id),
        "tenantId": user.branch_id,
        "role": user.role.value,
        "isManager": bool(user.is_manager),
        "iat": now,
        "exp": now + timedelta(seconds=settings.TOKEN_TTL_SECONDS),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired, please log in again")
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid token")


class AuthService:
    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)

    def login(self, email: str, password: str, client_key: Optional[str] = None) -> Tuple[User, str]:
        """Check credentials and issue a token. Attempts are throttled per `client_key`."""
        if client_key is not None:
            allowed, retry_after = login_limiter.hit(client_key)
            if not allowed:
                log.warning("login throttled for client %s", client_key)
                raise RateLimitedError("Too many login attempts, try again later", retry_after=retry_after)
        user = self.users.get_by_email(email or "")
        if not user or not verify_password(password or "", user.password_hash):
            log.warning("login failed for %r", email)
            raise AuthenticationError("Invalid email or password")
        log.info("login user=%s role=%s branch=%s", user.id, user.role.value, user.branch_id)
        return user, issue_token(user)
