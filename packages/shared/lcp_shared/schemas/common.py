from enum import Enum
from typing import Optional
from pydantic import BaseModel

class Role(str, Enum):
    ADMIN = "administrator"
    CONTRIBUTOR = "contributor"

class RecordType(str, Enum):
    ENTRY = "entry"
    CITY = "city"

class RecordStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PRIVATE = "private"
    TRASH = "trash"

# Statuses a client may ask for. "publish" is accepted on input so that it can
# be pinned back to draft by the access policy instead of failing validation.
PUBLISH_STATUS = "publish"

class StatusFilter(str, Enum):
    ANY = "any"
    DRAFT = "draft"
    PENDING = "pending"
    PRIVATE = "private"
    TRASH = "trash"

class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int

class ErrorBody(BaseModel):
    code: str
    message: str
    status: int

class APIResponse(BaseModel):
    data: Optional[object] = None
    error: Optional[ErrorBody] = None
