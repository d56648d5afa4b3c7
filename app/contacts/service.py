import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.auth.permissions import PermissionName, has_permission
from app.content import common
from app.errors import AuthorizationError, ValidationError
from app.models.contact import CONTACT_STATUSES, Contact
from app.models.user import User
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (Contact.name, Contact.email, Contact.company, Contact.subject, Contact.message)

# target status -> statuses it may be reached from
TRANSITIONS = {
    "read": {"new"},
    "replied": {"new", "read"},
    "archived": set(CONTACT_STATUSES),
    "spam": set(CONTACT_STATUSES),
    "new": {"read", "replied", "archived", "spam"},
}

EXPORT_HEADER = [
    "ID", "Name", "Email", "Phone", "Company", "Subject",
    "Message", "Status", "Created", "Read", "Replied",
]

DATE_FORMAT = "%d/%m/%Y %H:%M"


def can_transition(current: str, target: str) -> bool:
    return current in TRANSITIONS.get(target, set())


def _apply_status(contact: Contact, target: str) -> None:
    now = utcnow()
    if target == "read":
        contact.read_at = now
    elif target == "replied":
        contact.replied_at = now
        if contact.read_at is None:
            contact.read_at = now
    elif target == "new":
        contact.read_at = None
        contact.replied_at = None
    contact.status = target


def transition(db: Session, contact: Contact, target: str) -> Contact:
    if not can_transition(contact.status, target):
        raise ValidationError.field("status", f"Cannot change a {contact.status} contact to {target}")
    _apply_status(contact, target)
    db.commit()
    db.refresh(contact)
    logger.info("Contact %s marked %s", contact.id, target)
    return contact


def mark_read(db: Session, contact: Contact) -> Contact:
    return transition(db, contact, "read")


def mark_replied(db: Session, contact: Contact) -> Contact:
    return transition(db, contact, "replied")


def archive(db: Session, contact: Contact) -> Contact:
    return transition(db, contact, "archived")


def mark_spam(db: Session, contact: Contact) -> Contact:
    return transition(db, contact, "spam")


def mark_new(db: Session, contact: Contact) -> Contact:
    return transition(db, contact, "new")


def _filtered(db: Session, status=None, date_from: date | None = None, date_to: date | None = None):
    query = db.query(Contact)
    if status:
        query = query.filter(Contact.status == status)
    return common.apply_date_range(query, Contact.created_at, date_from, date_to)


def status_counts(db: Session) -> dict:
    rows = dict(db.query(Contact.status, func.count(Contact.id)).group_by(Contact.status).all())
    return {s: rows.get(s, 0) for s in CONTACT_STATUSES}


def list_contacts(db: Session, *, search=None, status=None, date_from=None, date_to=None,
                  recent_days: int | None = None, sort_by=None, sort_order=None, page=1, per_page=15):
    query = _filtered(db, status, date_from, date_to)
    query = common.apply_search(query, search, SEARCH_FIELDS)
    if recent_days:
        query = query.filter(Contact.created_at >= utcnow() - timedelta(days=recent_days))
    query = common.apply_sort(query, Contact, sort_by, sort_order)
    items, meta = common.paginate(query, page, per_page)
    counts = status_counts(db)
    meta.update({
        "total_contacts": sum(counts.values()),
        **{f"{s}_contacts": n for s, n in counts.items()},
        "recent_contacts": common.count_recent(db, Contact, 7),
    })
    return items, meta


def get_contact(db: Session, contact_id: int) -> Contact:
    return common.get_or_404(db, Contact, contact_id, "Contact")


def show_contact(db: Session, contact_id: int) -> Contact:
    contact = get_contact(db, contact_id)
    if contact.status == "new":
        mark_read(db, contact)
    return contact


def update_contact(db: Session, actor: User, contact: Contact, status: str, notes: str | None = None) -> Contact:
    """Change status and optionally attach a staff note.

    Re-submitting the current status only updates the note.
    """
    if status != contact.status:
        if not can_transition(contact.status, status):
            raise ValidationError.field("status", f"Cannot change a {contact.status} contact to {status}")
        _apply_status(contact, status)
    if notes:
        meta = dict(contact.meta or {})
        meta.update({"notes": notes, "updated_by": actor.name, "updated_at": utcnow().isoformat()})
        contact.meta = meta
    db.commit()
    db.refresh(contact)
    logger.info("Contact %s updated by user %s", contact.id, actor.id)
    return contact


def delete_contact(db: Session, actor: User, contact: Contact) -> None:
    contact_id = contact.id
    db.delete(contact)
    db.commit()
    logger.info("Contact %s deleted by user %s", contact_id, actor.id)


def _average_response_hours(db: Session) -> float:
    rows = (
        db.query(Contact.created_at, Contact.replied_at)
        .filter(Contact.status == "replied", Contact.replied_at.isnot(None), Contact.created_at.isnot(None))
        .all()
    )
    if not rows:
        return 0
    hours = [int((replied - created).total_seconds() // 3600) for created, replied in rows]
    return round(sum(hours) / len(hours), 1)


def get_stats(db: Session) -> dict:
    counts = status_counts(db)
    total = sum(counts.values())
    midnight = datetime.combine(utcnow().date(), time.min)
    top = (
        db.query(Contact.subject, func.count(Contact.id).label("total"))
        .group_by(Contact.subject)
        .order_by(func.count(Contact.id).desc(), Contact.subject)
        .limit(5)
        .all()
    )
    return {
        "total_contacts": total,
        **{f"{s}_contacts": n for s, n in counts.items()},
        "unread_contacts": counts["new"],
        "recent_contacts": {
            "today": db.query(Contact).filter(Contact.created_at >= midnight).count(),
            "this_week": common.count_recent(db, Contact, 7),
            "this_month": common.count_recent(db, Contact, 30),
        },
        "response_rate": round(counts["replied"] / total * 100, 1) if total else 0,
        "avg_response_time": _average_response_hours(db),
        "top_subjects": {subject: n for subject, n in top},
    }


def _fmt(value: datetime | None) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def export_rows(db: Session, *, status=None, date_from=None, date_to=None) -> tuple[list[list], dict]:
    contacts = _filtered(db, status, date_from, date_to).order_by(Contact.created_at.desc(), Contact.id.desc()).all()
    rows: list[list] = [EXPORT_HEADER]
    for c in contacts:
        rows.append([
            c.id, c.name, c.email, c.phone, c.company, c.subject, c.short_message,
            c.status_label, _fmt(c.created_at), _fmt(c.read_at), _fmt(c.replied_at),
        ])
    meta = {"total_exported": len(rows) - 1, "export_date": utcnow().strftime(DATE_FORMAT)}
    return rows, meta


BULK_TARGETS = {
    "mark_read": "read",
    "mark_replied": "replied",
    "archive": "archived",
    "mark_spam": "spam",
}

BULK_MESSAGES = {
    "mark_read": "marked as read",
    "mark_replied": "marked as replied",
    "archive": "archived",
    "mark_spam": "marked as spam",
    "delete": "deleted",
}


def bulk_action(db: Session, actor: User, action: str, ids: list[int]) -> str:
    if action == "delete" and not has_permission(actor, PermissionName.DELETE_CONTACTS):
        raise AuthorizationError(f"Missing permission: {PermissionName.DELETE_CONTACTS.value}")

    contacts = common.load_bulk(db, Contact, ids, "contact_ids")
    affected = 0
    for contact in contacts:
        if action == "delete":
            db.delete(contact)
            affected += 1
            continue
        target = BULK_TARGETS[action]
        if can_transition(contact.status, target):
            _apply_status(contact, target)
            affected += 1
    db.commit()
    logger.info("Bulk %s on %d of %d contact(s) by user %s", action, affected, len(contacts), actor.id)
    return f"{affected} contact(s) {BULK_MESSAGES[action]}"
