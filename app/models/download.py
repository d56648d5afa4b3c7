
from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, DateTime, JSON
from app.db.session import Base
from app.utils.clock import utcnow
from app.utils.responses import format_bytes

FILE_ICONS = {
    "pdf": "file-text", "doc": "file-text", "docx": "file-text",
    "xls": "file-spreadsheet", "xlsx": "file-spreadsheet",
    "ppt": "file-presentation", "pptx": "file-presentation",
    "jpg": "image", "jpeg": "image", "png": "image", "gif": "image",
    "mp4": "video", "avi": "video", "mov": "video",
    "mp3": "music", "wav": "music",
    "zip": "archive", "rar": "archive",
}

class Download(Base):
    __tablename__ = "downloads"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), unique=True, nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_url = Column(String(500), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    file_type = Column(String(50), nullable=False, index=True)
    mime_type = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    tags = Column(JSON, default=list)
    author = Column(String(255), nullable=False, index=True)
    version = Column(String(50))
    is_featured = Column(Boolean, default=False, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    requires_registration = Column(Boolean, default=False, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def formatted_file_size(self) -> str:
        return format_bytes(self.file_size)

    @property
    def file_type_icon(self) -> str:
        ext = (self.file_name or "").rsplit(".", 1)[-1].lower() if "." in (self.file_name or "") else ""
        return FILE_ICONS.get(ext, "file")
