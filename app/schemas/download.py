
from datetime import datetime
from pydantic import BaseModel, Field
from app.schemas.common import SLUG_PATTERN

class DownloadIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255, pattern=SLUG_PATTERN)
    description: str | None = Field(default=None, max_length=1000)
    category: str = Field(min_length=1, max_length=100)
    tags: list[str] = Field(default_factory=list)
    author: str = Field(min_length=1, max_length=255)
    version: str | None = Field(default=None, max_length=50)
    is_featured: bool | None = None
    is_published: bool | None = None
    requires_registration: bool | None = None

class DownloadOut(BaseModel):
    id: int
    title: str
    slug: str
    description: str | None = None
    file_name: str
    file_url: str
    file_size: int
    formatted_file_size: str
    file_type: str
    file_type_icon: str
    mime_type: str
    category: str
    tags: list[str] | None = None
    author: str
    version: str | None = None
    is_featured: bool
    is_published: bool
    requires_registration: bool
    download_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
