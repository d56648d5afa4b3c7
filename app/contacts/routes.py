from datetime import date

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.auth.deps import get_db, require_permission
from app.auth.permissions import PermissionName as P
from app.contacts import intake, service
from app.models.user import User
from app.schemas.common import ContactBulkIn
from app.schemas.contact import ContactIn, ContactOut, ContactUpdate
from app.utils.payloads import serialize, serialize_many
from app.utils.responses import envelope

router = APIRouter(tags=["contacts"])

can_view = require_permission(P.VIEW_CONTACTS)
can_manage = require_permission(P.MANAGE_CONTACTS)


@router.post("/contact", status_code=status.HTTP_201_CREATED)
def submit_contact(body: ContactIn, request: Request, db: Session = Depends(get_db)):
    contact = intake.submit(
        db, body,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
        accept_language=request.headers.get("accept-language"),
    )
    return envelope(
        {"id": contact.id, "created_at": contact.created_at.isoformat()},
        "Message sent. We will get back to you soon.",
    )


@router.get("/contacts")
def list_contacts(
    search: str | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    recent_days: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 15,
    db: Session = Depends(get_db),
    user: User = Depends(can_view),
):
    items, meta = service.list_contacts(
        db, search=search, status=status, date_from=date_from, date_to=date_to,
        recent_days=recent_days, sort_by=sort_by, sort_order=sort_order, page=page, per_page=per_page,
    )
    return envelope(serialize_many(ContactOut, items), meta=meta)


@router.get("/contacts-stats")
def stats(db: Session = Depends(get_db), user: User = Depends(can_view)):
    return envelope(service.get_stats(db))


@router.get("/contacts-export")
def export(
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(can_view),
):
    rows, meta = service.export_rows(db, status=status, date_from=date_from, date_to=date_to)
    return envelope(rows, meta=meta)


@router.post("/contacts/bulk-action")
def bulk_action(body: ContactBulkIn, db: Session = Depends(get_db), user: User = Depends(can_manage)):
    return envelope(message=service.bulk_action(db, user, body.action, body.contact_ids))


@router.get("/contacts/{contact_id}")
def show_contact(contact_id: int, db: Session = Depends(get_db), user: User = Depends(can_view)):
    return envelope(serialize(ContactOut, service.show_contact(db, contact_id)))


@router.put("/contacts/{contact_id}")
def update_contact(contact_id: int, body: ContactUpdate, db: Session = Depends(get_db),
                   user: User = Depends(can_manage)):
    contact = service.update_contact(db, user, service.get_contact(db, contact_id), body.status, body.notes)
    return envelope(serialize(ContactOut, contact), "Contact updated")


@router.delete("/contacts/{contact_id}")
def delete_contact(contact_id: int, db: Session = Depends(get_db),
                   user: User = Depends(require_permission(P.DELETE_CONTACTS))):
    service.delete_contact(db, user, service.get_contact(db, contact_id))
    return envelope(message="Contact deleted")


@router.patch("/contacts/{contact_id}/mark-read")
def mark_read(contact_id: int, db: Session = Depends(get_db), user: User = Depends(can_manage)):
    contact = service.mark_read(db, service.get_contact(db, contact_id))
    return envelope(serialize(ContactOut, contact), "Contact marked as read")


@router.patch("/contacts/{contact_id}/mark-replied")
def mark_replied(contact_id: int, db: Session = Depends(get_db), user: User = Depends(can_manage)):
    contact = service.mark_replied(db, service.get_contact(db, contact_id))
    return envelope(serialize(ContactOut, contact), "Contact marked as replied")


@router.patch("/contacts/{contact_id}/mark-spam")
def mark_spam(contact_id: int, db: Session = Depends(get_db), user: User = Depends(can_manage)):
    contact = service.mark_spam(db, service.get_contact(db, contact_id))
    return envelope(serialize(ContactOut, contact), "Contact marked as spam")


@router.patch("/contacts/{contact_id}/archive")
def archive(contact_id: int, db: Session = Depends(get_db), user: User = Depends(can_manage)):
    contact = service.archive(db, service.get_contact(db, contact_id))
    return envelope(serialize(ContactOut, contact), "Contact archived")


@router.patch("/contacts/{contact_id}/mark-new")
def mark_new(contact_id: int, db: Session = Depends(get_db), user: User = Depends(can_manage)):
    contact = service.mark_new(db, service.get_contact(db, contact_id))
    return envelope(serialize(ContactOut, contact), "Contact marked as new")
