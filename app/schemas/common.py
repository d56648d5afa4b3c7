
from typing import Literal
from pydantic import BaseModel, Field

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

class PostBulkIn(BaseModel):
    action: Literal["publish", "unpublish", "delete"]
    post_ids: list[int] = Field(min_length=1)

class DownloadBulkIn(BaseModel):
    action: Literal["publish", "unpublish", "feature", "unfeature", "delete"]
    download_ids: list[int] = Field(min_length=1)

class ProjectBulkIn(BaseModel):
    action: Literal["publish", "unpublish", "feature", "unfeature", "delete"]
    project_ids: list[int] = Field(min_length=1)

class ContactBulkIn(BaseModel):
    action: Literal["mark_read", "mark_replied", "archive", "mark_spam", "delete"]
    contact_ids: list[int] = Field(min_length=1)
