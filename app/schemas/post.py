
from datetime import date, datetime
from pydantic import BaseModel, Field, HttpUrl
from app.schemas.common import SLUG_PATTERN

class PostIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255, pattern=SLUG_PATTERN)
    excerpt: str | None = Field(default=None, max_length=500)
    full_content: str = Field(min_length=1)
    author: str = Field(min_length=1, max_length=255)
    publish_date: date
    category: str | None = Field(default=None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    image_url: HttpUrl | None = None
    is_published: bool | None = None

class PostOut(BaseModel):
    id: int
    title: str
    slug: str
    excerpt: str | None = None
    summary: str
    full_content: str
    author: str
    publish_date: date
    category: str | None = None
    tags: list[str] | None = None
    image_url: str | None = None
    is_published: bool
    views_count: int
    reading_time: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
