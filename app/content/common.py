"""
Helpers shared by the posts, downloads, projects and contacts services.
"""
from datetime import date, datetime, time, timedelta

from sqlalchemy import String, case, cast, func, or_
from sqlalchemy.orm import Query, Session

from app.content.slugs import slugify
from app.errors import NotFoundError, ValidationError
from app.utils.clock import utcnow
from app.utils.responses import page_meta

MAX_PER_PAGE = 100


def find_by_key(db: Session, model, key: str | int, label: str):
    """Look an entity up by numeric id or by slug, interchangeably."""
    key = str(key)
    query = db.query(model)
    if key.isdigit():
        query = query.filter(or_(model.id == int(key), model.slug == key))
    else:
        query = query.filter(model.slug == key)
    obj = query.order_by(model.id).first()
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def get_or_404(db: Session, model, obj_id: int, label: str):
    obj = db.get(model, obj_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def resolve_slug(title: str, slug: str | None, current=None) -> str:
    """Explicit slug wins; otherwise derive from the title.

    On update an unchanged title keeps the stored slug.
    """
    if slug:
        return slug
    if current is not None and current.title == title and current.slug:
        return current.slug
    derived = slugify(title)
    if not derived:
        raise ValidationError.field("slug", "Could not derive a slug from the title")
    return derived


def ensure_unique(db: Session, model, values: dict, exclude_id: int | None = None) -> None:
    errors = {}
    for field, value in values.items():
        query = db.query(model.id).filter(getattr(model, field) == value)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is not None:
            errors[field] = [f"The {field} has already been taken."]
    if errors:
        raise ValidationError(errors)


def apply_search(query: Query, term: str | None, columns) -> Query:
    if not term:
        return query
    like = f"%{term}%"
    return query.filter(or_(*[col.ilike(like) for col in columns]))


def apply_tags(query: Query, column, tags) -> Query:
    if not tags:
        return query
    if isinstance(tags, str):
        tags = tags.split(",")
    for tag in (t.strip() for t in tags):
        if tag:
            query = query.filter(cast(column, String).like(f'%"{tag}"%'))
    return query


def apply_status(query: Query, model, status: str | None) -> Query:
    if status == "published":
        return query.filter(model.is_published.is_(True))
    if status == "draft":
        return query.filter(model.is_published.is_(False))
    return query


def apply_date_range(query: Query, column, date_from: date | None, date_to: date | None) -> Query:
    is_date = column.type.python_type is date
    if date_from:
        query = query.filter(column >= (date_from if is_date else datetime.combine(date_from, time.min)))
    if date_to:
        if is_date:
            query = query.filter(column <= date_to)
        else:
            query = query.filter(column < datetime.combine(date_to + timedelta(days=1), time.min))
    return query


def apply_sort(query: Query, model, sort_by: str | None, sort_order: str | None,
               exclude: frozenset[str] = frozenset()) -> Query:
    sort_by = sort_by or "created_at"
    if sort_by not in model.__table__.columns or sort_by in exclude:
        raise ValidationError.field("sort_by", f"Cannot sort by '{sort_by}'")
    if (sort_order or "desc").lower() not in ("asc", "desc"):
        raise ValidationError.field("sort_order", "Must be 'asc' or 'desc'")
    prop = model.__mapper__.get_property_by_column(model.__table__.columns[sort_by])
    column = getattr(model, prop.key)
    ordered = column.asc() if (sort_order or "desc").lower() == "asc" else column.desc()
    return query.order_by(ordered, model.id.desc())


def paginate(query: Query, page: int, per_page: int) -> tuple[list, dict]:
    page = max(1, page or 1)
    per_page = min(max(1, per_page or 15), MAX_PER_PAGE)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return items, page_meta(total, page, per_page)


def distinct_values(db: Session, column) -> list:
    return [v for (v,) in db.query(column).filter(column.isnot(None)).distinct().order_by(column).all() if v]


def count_recent(db: Session, model, days: int = 30) -> int:
    return db.query(model).filter(model.created_at >= utcnow() - timedelta(days=days)).count()


def category_breakdown(db: Session, model) -> list[dict]:
    rows = (
        db.query(
            model.category,
            func.count(model.id),
            func.sum(case((model.is_published.is_(True), 1), else_=0)),
        )
        .filter(model.category.isnot(None))
        .group_by(model.category)
        .all()
    )
    result = [{"name": name, "count": total, "published_count": int(published or 0)} for name, total, published in rows]
    return sorted(result, key=lambda r: r["count"], reverse=True)


def load_bulk(db: Session, model, ids: list[int], field: str) -> list:
    ids = list(dict.fromkeys(ids))
    items = db.query(model).filter(model.id.in_(ids)).all()
    found = {obj.id for obj in items}
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError.field(field, f"Unknown id(s): {', '.join(map(str, missing))}")
    return items
