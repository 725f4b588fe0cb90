"""
Feedback Pydantic schemas
---------------------------------
Features:
- Request bodies for every ticket operation (validated before any state change)
- `TicketOut`: the one canonical ticket shape returned by the API

Usage:
- JSON keys are camelCase (`ticketNumber`, `isAnonymous`, ...); snake_case
  field names are accepted on input as well
- Serialize with `model_dump(by_alias=True, mode="json")`
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config.settings import MAX_ATTACHMENTS
from .feedback import FeedbackType
from .user import UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============================================================================
# Requests
# ============================================================================

class LocationIn(CamelModel):
    country: Optional[str] = None
    province: Optional[str] = None
    district: Optional[str] = None
    sector: Optional[str] = None
    other_details: Optional[str] = Field(default=None, max_length=500)


class FeedbackCreate(CamelModel):
    """Create a ticket"""
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    type: FeedbackType
    category: str = Field(..., min_length=1, max_length=100)
    subcategory: Optional[str] = Field(default=None, max_length=100)
    is_anonymous: bool = False
    is_public: bool = True
    location: Optional[LocationIn] = None
    attachments: List[str] = Field(default_factory=list, max_length=MAX_ATTACHMENTS)
    citizen_name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=20)

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value):
        # "complaint" / "COMPLAINT" -> Complaint
        return FeedbackType(value) if isinstance(value, str) else value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "No water since Monday",
                "description": "The whole street has had no water supply for three days.",
                "type": "Complaint",
                "category": "Water",
                "subcategory": "Supply Interruption",
                "isAnonymous": True,
                "isPublic": True,
                "location": {
                    "country": "Rwanda",
                    "province": "Kigali City",
                    "district": "Gasabo",
                    "sector": "Remera",
                },
                "attachments": [],
            }
        }
    )


class FeedbackUpdate(CamelModel):
    """Author edit of an open ticket; omitted fields are left as they are"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    subcategory: Optional[str] = Field(default=None, max_length=100)
    is_public: Optional[bool] = None
    location: Optional[LocationIn] = None
    attachments: Optional[List[str]] = Field(default=None, max_length=MAX_ATTACHMENTS)
    expected_version: Optional[int] = None


class StatusChangeRequest(CamelModel):
    """Change status; `note` is checked by the lifecycle engine"""
    status: str
    note: Optional[str] = None
    expected_version: Optional[int] = None


class CommentCreate(CamelModel):
    message: str = Field(..., min_length=1)
    parent_id: Optional[int] = None


class CommentUpdate(CamelModel):
    message: str = Field(..., min_length=1)


class ResponseCreate(CamelModel):
    """Official response, optionally bundling a status change"""
    message: str = Field(..., min_length=1)
    status_update: Optional[str] = None
    note: Optional[str] = None
    attachments: List[str] = Field(default_factory=list, max_length=MAX_ATTACHMENTS)
    expected_version: Optional[int] = None


class ResponseUpdate(CamelModel):
    message: str = Field(..., min_length=1)


class RatingRequest(CamelModel):
    value: int = Field(..., ge=1, le=5)


class FollowRequest(CamelModel):
    """`follow` omitted means toggle"""
    follow: Optional[bool] = None


class LikeRequest(CamelModel):
    """`like` omitted means toggle"""
    like: Optional[bool] = None


class AssignRequest(CamelModel):
    assigned_to: Optional[int] = None
    assigned_agency: Optional[str] = Field(default=None, max_length=200)


class RoleUpdateRequest(CamelModel):
    role: UserRole
    categories: List[str] = Field(default_factory=list)


# ============================================================================
# Responses
# ============================================================================

class AuthorOut(CamelModel):
    id: int
    name: str


class LocationOut(CamelModel):
    country: Optional[str] = None
    province: Optional[str] = None
    district: Optional[str] = None
    sector: Optional[str] = None
    other_details: Optional[str] = None


class StatusHistoryOut(CamelModel):
    status: str
    changed_by: str
    timestamp: datetime
    note: str


class CommentOut(CamelModel):
    comment_id: int
    author_type: str
    author_id: Optional[int] = None
    author_name: str
    message: str
    timestamp: datetime
    likes: int = 0
    liked_by: List[int] = Field(default_factory=list)
    parent_id: Optional[int] = None


class ResponseOut(CamelModel):
    response_id: int
    by: str
    message: str
    timestamp: datetime
    attachments: List[str] = Field(default_factory=list)
    status_update: str
    likes: int = 0
    liked_by: List[int] = Field(default_factory=list)


class TicketOut(CamelModel):
    """Canonical ticket shape"""
    id: int
    ticket_number: str
    title: str
    description: str
    type: str
    category: str
    subcategory: Optional[str] = None
    status: str
    priority: str
    is_public: bool
    is_anonymous: bool
    author: Optional[AuthorOut] = None
    citizen_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[LocationOut] = None
    attachments: List[str] = Field(default_factory=list)
    assigned_agency: Optional[str] = None
    assigned_to: Optional[int] = None
    followers: List[int] = Field(default_factory=list)
    follower_count: int = 0
    likes: int = 0
    liked_by: List[int] = Field(default_factory=list)
    views: int = 0
    status_history: List[StatusHistoryOut] = Field(default_factory=list)
    response: Optional[ResponseOut] = None
    responses: List[ResponseOut] = Field(default_factory=list)
    comments: List[CommentOut] = Field(default_factory=list)
    rating: Optional[int] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class FollowState(CamelModel):
    is_following: bool
    follower_count: int


class LikeState(CamelModel):
    has_liked: bool
    likes_count: int
