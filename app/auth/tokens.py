"""Bearer token issue, resolution and revocation."""
import logging
import uuid

from jose import JWTError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import AuthenticationError
from app.models.user import AccessToken, User
from app.utils.clock import utcnow
from app.utils.security import create_access_token, decode_token

logger = logging.getLogger(__name__)

STANDARD = "auth_token"
REMEMBER = "remember_token"


def issue_token(db: Session, user: User, remember: bool = False) -> str:
    name = REMEMBER if remember else STANDARD
    minutes = settings.remember_token_expire_minutes if remember else settings.access_token_expire_minutes
    jti = uuid.uuid4().hex
    token, expire = create_access_token(str(user.id), jti, minutes)
    db.add(AccessToken(
        user_id=user.id,
        jti=jti,
        name=name,
        expires_at=expire.replace(tzinfo=None),
    ))
    db.commit()
    logger.info("Issued %s for user %s", name, user.id)
    return token


def resolve_token(db: Session, raw: str) -> tuple[User, AccessToken]:
    try:
        payload = decode_token(raw)
    except JWTError:
        raise AuthenticationError("Invalid token")

    jti = payload.get("jti")
    sub = payload.get("sub")
    if not jti or not sub:
        raise AuthenticationError("Invalid token")

    record = db.query(AccessToken).filter(AccessToken.jti == jti).first()
    if record is None or str(record.user_id) != str(sub):
        raise AuthenticationError("Token has been revoked")
    if record.expires_at <= utcnow():
        raise AuthenticationError("Token expired")

    user = record.user
    if user is None or not user.is_active:
        raise AuthenticationError("Account is inactive")

    record.last_used_at = utcnow()
    db.commit()
    return user, record


def revoke_token(db: Session, token: AccessToken) -> None:
    db.delete(token)
    db.commit()
    logger.info("Revoked token %s of user %s", token.id, token.user_id)


def revoke_all(db: Session, user: User, commit: bool = True) -> int:
    count = db.query(AccessToken).filter(AccessToken.user_id == user.id).delete(synchronize_session=False)
    db.expire(user, ["tokens"])
    if commit:
        db.commit()
    logger.info("Revoked %d token(s) of user %s", count, user.id)
    return count
