
from sqlalchemy import Column, Integer, String, Text, Boolean, Date, DateTime, JSON
from app.db.session import Base
from app.utils.clock import utcnow

PROJECT_STATUSES = ("planning", "in_progress", "completed", "on_hold")

class Project(Base):
    __tablename__ = "projects"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), unique=True, nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    full_description = Column(Text)
    client = Column(String(255))
    category = Column(String(100), nullable=False, index=True)
    technologies = Column(JSON, default=list)
    project_url = Column(String(500))
    repository_url = Column(String(500))
    gallery = Column(JSON, default=list)
    featured_image = Column(String(500))
    featured_image_path = Column(String(500))
    start_date = Column(Date)
    end_date = Column(Date)
    status = Column(String(20), default="planning", nullable=False, index=True)
    is_featured = Column(Boolean, default=False, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    views_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def duration_days(self) -> int | None:
        if not self.start_date:
            return None
        end = self.end_date or utcnow().date()
        return (end - self.start_date).days

    @property
    def gallery_count(self) -> int:
        return len(self.gallery or [])
