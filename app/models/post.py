
import math
import re

from sqlalchemy import Column, Integer, String, Text, Boolean, Date, DateTime, JSON
from app.db.session import Base
from app.utils.clock import utcnow

_TAGS = re.compile(r"<[^>]+>")

class Post(Base):
    __tablename__ = "posts"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), unique=True, nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    excerpt = Column(Text)
    full_content = Column(Text, nullable=False)
    author = Column(String(255), nullable=False, index=True)
    publish_date = Column(Date, nullable=False)
    category = Column(String(100), index=True)
    tags = Column(JSON, default=list)
    image_url = Column(String(500))
    image_path = Column(String(500))
    is_published = Column(Boolean, default=False, nullable=False)
    views_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def plain_content(self) -> str:
        return _TAGS.sub("", self.full_content or "")

    @property
    def summary(self) -> str:
        if self.excerpt:
            return self.excerpt
        text = self.plain_content
        return text if len(text) <= 150 else text[:150].rstrip() + "..."

    @property
    def reading_time(self) -> int:
        words = len(self.plain_content.split())
        return math.ceil(words / 200)
