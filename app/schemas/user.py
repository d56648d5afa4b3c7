
from pydantic import EmailStr, Field
from app.auth.permissions import RoleName
from app.schemas.auth import ProfileFields, PasswordConfirmation

class UserCreate(ProfileFields, PasswordConfirmation):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=256)
    role: RoleName
    is_active: bool = True

class UserUpdate(ProfileFields, PasswordConfirmation):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    role: RoleName
    is_active: bool | None = None
