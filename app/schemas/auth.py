
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, HttpUrl, model_validator

class ProfileFields(BaseModel):
    bio: str | None = Field(default=None, max_length=1000)
    phone: str | None = Field(default=None, max_length=20)
    website: HttpUrl | None = None
    location: str | None = Field(default=None, max_length=255)

class PasswordConfirmation(BaseModel):
    password: str | None = None
    password_confirmation: str | None = None

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password is not None:
            if len(self.password) < 8:
                raise ValueError("password must be at least 8 characters")
            if self.password != self.password_confirmation:
                raise ValueError("password confirmation does not match")
        return self

class RegisterIn(ProfileFields, PasswordConfirmation):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=256)

class LoginIn(BaseModel):
    email: EmailStr
    password: str
    remember_me: bool = False

class ProfileUpdate(ProfileFields, PasswordConfirmation):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    current_password: str | None = None

class UserOut(BaseModel):
    id: int
    name: str
    email: str
    avatar: str | None = None
    avatar_url: str
    bio: str | None = None
    phone: str | None = None
    website: str | None = None
    location: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    role_names: list[str] = Field(default_factory=list, serialization_alias="roles")
    permission_names: list[str] = Field(default_factory=list, serialization_alias="permissions")
    initials: str = ""

    class Config:
        from_attributes = True

class TokenOut(BaseModel):
    token: str
    token_type: str = "Bearer"
