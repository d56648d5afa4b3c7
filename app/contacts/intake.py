"""
Public contact form intake.

Submissions pass a per-IP and per-email rate gate before they are stored,
and every stored submission is then screened for spam. The gate rejects at
``count >= limit`` while the screen flags at ``count > limit``; the screen
counts include the submission just stored.
"""
import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.errors import RateLimitError
from app.models.contact import Contact
from app.schemas.contact import ContactIn
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

SPAM_KEYWORDS = ("viagra", "casino", "lottery", "winner", "prize", "click here", "free money")


def count_from_ip(db: Session, ip_address: str | None, hours: int) -> int:
    since = utcnow() - timedelta(hours=hours)
    return db.query(Contact).filter(Contact.ip_address == ip_address, Contact.created_at >= since).count()


def count_from_email(db: Session, email: str, hours: int) -> int:
    since = utcnow() - timedelta(hours=hours)
    return db.query(Contact).filter(Contact.email == email, Contact.created_at >= since).count()


def check_rate(db: Session, ip_address: str | None, email: str) -> None:
    if count_from_ip(db, ip_address, settings.contact_ip_window_hours) >= settings.contact_ip_limit:
        logger.warning("Contact rejected: IP %s over limit", ip_address)
        raise RateLimitError("Too many messages sent. Please try again later.")
    if count_from_email(db, email, settings.contact_email_window_hours) >= settings.contact_email_limit:
        logger.warning("Contact rejected: email limit reached for %s", email)
        raise RateLimitError("Message limit for this email reached. Please try again tomorrow.")


def is_potential_spam(db: Session, contact: Contact) -> bool:
    if count_from_ip(db, contact.ip_address, settings.contact_ip_window_hours) > settings.contact_ip_limit:
        return True
    if count_from_email(db, contact.email, settings.contact_email_window_hours) > settings.contact_email_limit:
        return True
    message = (contact.message or "").lower()
    return any(keyword in message for keyword in SPAM_KEYWORDS)


def submit(db: Session, body: ContactIn, *, ip_address: str | None, user_agent: str | None,
           referrer: str | None = None, accept_language: str | None = None) -> Contact:
    email = str(body.email)
    check_rate(db, ip_address, email)

    contact = Contact(
        name=body.name,
        email=email,
        phone=body.phone,
        company=body.company,
        subject=body.subject,
        message=body.message,
        status="new",
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        meta={"referrer": referrer, "accept_language": accept_language},
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)

    if is_potential_spam(db, contact):
        contact.status = "spam"
        db.commit()
        db.refresh(contact)
        logger.warning("Contact %s flagged as spam", contact.id)
    else:
        logger.info("Contact %s received", contact.id)
    return contact
