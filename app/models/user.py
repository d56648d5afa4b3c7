
import hashlib

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.utils.clock import utcnow

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)

role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

class Permission(Base):
    __tablename__ = "permissions"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)

class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False, index=True)

    permissions = relationship("Permission", secondary=role_permissions, lazy="selectin")

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    avatar = Column(String(500))
    bio = Column(Text)
    phone = Column(String(20))
    website = Column(String(255))
    location = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    roles = relationship("Role", secondary=user_roles, lazy="selectin")
    tokens = relationship("AccessToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def role_names(self) -> list[str]:
        return sorted(r.name for r in self.roles)

    @property
    def permission_names(self) -> list[str]:
        return sorted({p.name for r in self.roles for p in r.permissions})

    @property
    def initials(self) -> str:
        parts = (self.name or "").split()
        return "".join(p[0].upper() for p in parts)[:2]

    @property
    def avatar_url(self) -> str:
        if self.avatar:
            from app.storage.local import get_storage
            return get_storage().url(self.avatar)
        return self.gravatar_url()

    def gravatar_url(self) -> str:
        digest = hashlib.md5((self.email or "").strip().lower().encode("utf-8")).hexdigest()
        return f"https://www.gravatar.com/avatar/{digest}?d=identicon&s=150"

class AccessToken(Base):
    __tablename__ = "access_tokens"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    jti = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(50), nullable=False, default="auth_token")
    created_at = Column(DateTime, default=utcnow)
    last_used_at = Column(DateTime)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="tokens")
