
from datetime import date, datetime
from typing import Literal
from pydantic import BaseModel, Field, HttpUrl, model_validator
from app.schemas.common import SLUG_PATTERN

ProjectStatus = Literal["planning", "in_progress", "completed", "on_hold"]

class ProjectIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255, pattern=SLUG_PATTERN)
    description: str = Field(min_length=1)
    full_description: str | None = None
    client: str | None = Field(default=None, max_length=255)
    category: str = Field(min_length=1, max_length=100)
    technologies: list[str] = Field(default_factory=list)
    project_url: HttpUrl | None = None
    repository_url: HttpUrl | None = None
    gallery: list[HttpUrl] = Field(default_factory=list)
    start_date: date | None = None
    end_date: date | None = None
    status: ProjectStatus | None = None
    is_featured: bool | None = None
    is_published: bool | None = None

    @model_validator(mode="after")
    def _dates_in_order(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

class ProjectOut(BaseModel):
    id: int
    title: str
    slug: str
    description: str
    full_description: str | None = None
    client: str | None = None
    category: str
    technologies: list[str] | None = None
    project_url: str | None = None
    repository_url: str | None = None
    gallery: list[str] | None = None
    gallery_count: int
    featured_image: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    duration_days: int | None = None
    status: str
    is_featured: bool
    is_published: bool
    views_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
