
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Index
from app.db.session import Base
from app.utils.clock import utcnow

CONTACT_STATUSES = ("new", "read", "replied", "archived", "spam")
STATUS_LABELS = {"new": "New", "read": "Read", "replied": "Replied", "archived": "Archived", "spam": "Spam"}

class Contact(Base):
    __tablename__ = "contacts"
    __table_args__ = (Index("ix_contacts_created_status", "created_at", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20))
    company = Column(String(255))
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), default="new", nullable=False, index=True)
    ip_address = Column(String(45), index=True)
    user_agent = Column(String(500))
    meta = Column("metadata", JSON, default=dict)
    read_at = Column(DateTime)
    replied_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_unread(self) -> bool:
        return self.status == "new"

    @property
    def short_message(self) -> str:
        text = self.message or ""
        return text if len(text) <= 100 else text[:100] + "..."

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)
