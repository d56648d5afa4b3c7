
import logging

from sqlalchemy.orm import Session
from app.auth.permissions import RoleName, sync_roles
from app.auth.tokens import issue_token, revoke_all, revoke_token
from app.errors import AuthenticationError, AuthorizationError, ValidationError
from app.models.user import AccessToken, User
from app.schemas.auth import RegisterIn, LoginIn, ProfileUpdate
from app.utils.clock import utcnow
from app.utils.payloads import plain
from app.utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("bio", "phone", "website", "location")

def email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    query = db.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None

def register_user(db: Session, body: RegisterIn) -> tuple[User, str]:
    if email_taken(db, body.email):
        raise ValidationError.field("email", "The email has already been taken.")
    user = User(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        is_active=True,
        **{f: plain(getattr(body, f)) for f in PROFILE_FIELDS},
    )
    db.add(user)
    db.flush()
    sync_roles(db, user, [RoleName.VIEWER])
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user, issue_token(db, user)

def login_user(db: Session, body: LoginIn) -> tuple[User, str]:
    user = db.query(User).filter(User.email == body.email).first()
    if not user or not verify_password(body.password, user.password_hash):
        logger.warning("Failed login for %s", body.email)
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthorizationError("Account is deactivated. Contact the administrator.")
    user.last_login_at = utcnow()
    db.commit()
    token = issue_token(db, user, remember=body.remember_me)
    db.refresh(user)
    return user, token

def update_profile(db: Session, user: User, body: ProfileUpdate) -> User:
    if email_taken(db, body.email, exclude_id=user.id):
        raise ValidationError.field("email", "The email has already been taken.")
    if body.password:
        if not body.current_password or not verify_password(body.current_password, user.password_hash):
            raise ValidationError.field("current_password", "Current password is incorrect")
        user.password_hash = hash_password(body.password)
    user.name = body.name
    user.email = body.email
    for field in PROFILE_FIELDS:
        setattr(user, field, plain(getattr(body, field)))
    db.commit()
    db.refresh(user)
    logger.info("User %s updated their profile", user.id)
    return user

def logout(db: Session, token: AccessToken) -> None:
    revoke_token(db, token)

def logout_all(db: Session, user: User) -> int:
    return revoke_all(db, user)

def refresh(db: Session, token: AccessToken) -> str:
    user = token.user
    revoke_token(db, token)
    return issue_token(db, user)
