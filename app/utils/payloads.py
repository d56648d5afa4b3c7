from datetime import date

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.errors import ValidationError, pydantic_errors_to_map


def validate(schema: type[BaseModel], data: dict) -> BaseModel:
    """Build ``schema`` from form fields, raising the API's 422 error."""
    cleaned = {k: v for k, v in data.items() if v is not None and v != ""}
    try:
        return schema.model_validate(cleaned)
    except PydanticValidationError as e:
        raise ValidationError(pydantic_errors_to_map(e.errors()))


def plain(value):
    if isinstance(value, list):
        return [plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool, date, dict)):
        return value
    return str(value)


def columns(payload: BaseModel, exclude: set[str] | None = None) -> dict:
    return {k: plain(v) for k, v in payload.model_dump(exclude=exclude or set()).items()}


def serialize(schema: type[BaseModel], obj) -> dict:
    return schema.model_validate(obj).model_dump(mode="json", by_alias=True)


def serialize_many(schema: type[BaseModel], items) -> list[dict]:
    return [serialize(schema, obj) for obj in items]
